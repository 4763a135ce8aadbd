"""
==============================================================================
API Router
==============================================================================

Mounts the health and session routers under /api/v1.

==============================================================================
"""

from fastapi import APIRouter

from codescan.api.v1 import health, session


API_PREFIX = "/api/v1"


class MainAPIRouter:
    """Versioned REST surface of the scanner."""

    def __init__(self, prefix: str = API_PREFIX):
        self._router = APIRouter(prefix=prefix)
        for module in (health, session):
            self._router.include_router(module.router)

    @property
    def router(self) -> APIRouter:
        return self._router


api_router = MainAPIRouter().router
