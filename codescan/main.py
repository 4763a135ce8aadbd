"""
==============================================================================
Code Scanner - Application Entry Point
==============================================================================

FastAPI application with:
- RESTful session intents and health probes
- WebSocket live session updates
- Camera release on shutdown

Usage:
------
    # Development
    uvicorn codescan.main:app --reload

    # Production
    uvicorn codescan.main:app --host 0.0.0.0 --port 8000

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from codescan import __version__
from codescan.api.router import api_router
from codescan.config import get_settings
from codescan.core.dependencies import shutdown_orchestrator
from codescan.core.exceptions import register_exception_handlers
from codescan.websockets import session_router


# ============================================================================
# LOGGING
# ============================================================================

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

class Application:
    """
    Builds the FastAPI app and owns its lifespan.

    The scan orchestrator is created lazily by the first request that needs
    it and closed on shutdown so the camera is always released.
    """

    def __init__(self):
        self._settings = get_settings()
        self._app = self._create_app()

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title=self._settings.app_name,
            version=__version__,
            description="Live camera QR and linear barcode detection",
            lifespan=self._lifespan,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        self._configure_middleware(app)
        register_exception_handlers(app)
        self._register_routers(app)
        self._register_root(app)

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self._log_startup()
        try:
            yield
        finally:
            logger.info("🛑 Shutting down...")
            shutdown_orchestrator()
            logger.info("✅ Camera released, shutdown complete")

    def _log_startup(self) -> None:
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {self._settings.app_name}")
        if self._settings.is_development:
            logger.info("🔧 Development mode")
        logger.info(f"📷 Cameras: front={self._settings.front_camera} back={self._settings.back_camera}")
        logger.info(f"📦 Readers: {self._settings.stream_readers}")
        logger.info(f"📍 Running on http://{self._settings.host}:{self._settings.port}")
        logger.info(f"📖 API Docs: http://{self._settings.host}:{self._settings.port}/docs")
        logger.info("=" * 60)

    def _configure_middleware(self, app: FastAPI) -> None:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _register_routers(self, app: FastAPI) -> None:
        app.include_router(api_router)
        app.include_router(session_router)

    def _register_root(self, app: FastAPI) -> None:
        @app.get("/", include_in_schema=False)
        async def root():
            return RedirectResponse(url="/docs")

    @property
    def app(self) -> FastAPI:
        return self._app


application = Application()
app = application.app


# ============================================================================
# ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "codescan.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
