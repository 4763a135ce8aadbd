"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency injection for the scan orchestrator.

The application holds exactly one orchestrator bound to one camera source.
Tests replace it through ``app.dependency_overrides[get_orchestrator]``.

Usage Examples:
--------------
    @router.post("/session/enable")
    def enable(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
        return orchestrator.enable()

==============================================================================
"""

from __future__ import annotations

import logging
from functools import lru_cache

from codescan.camera.source import CameraFrameSource
from codescan.config import get_settings
from codescan.scanner.orchestrator import ScanOrchestrator


# Module logger
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_orchestrator() -> ScanOrchestrator:
    """
    Get the global ScanOrchestrator instance (singleton pattern).

    Returns:
        Orchestrator bound to the configured camera devices
    """
    settings = get_settings()
    source = CameraFrameSource(
        settings.device_for,
        width=settings.frame_width,
        height=settings.frame_height,
        join_timeout=settings.join_timeout_seconds,
    )
    logger.debug("Scan orchestrator created")
    return ScanOrchestrator(source, settings)


def shutdown_orchestrator() -> None:
    """Disable the global orchestrator if it was ever created."""
    if get_orchestrator.cache_info().currsize:
        get_orchestrator().close()
        get_orchestrator.cache_clear()
