"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from codescan.core.dependencies import get_orchestrator
from codescan.scanner.orchestrator import ScanOrchestrator


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, orchestrator: ScanOrchestrator):
        self._orchestrator = orchestrator

    def check_source(self) -> str:
        """Check camera stream status."""
        return "streaming" if self._orchestrator.source.is_streaming else "idle"

    def check_session(self) -> dict:
        """Check session status."""
        session = self._orchestrator.state()
        return {
            "enabled": session.enabled,
            "facing": session.facing.value,
            "last_error": session.last_error.value if session.last_error else None,
        }

    def get_health(self) -> dict:
        """Get full health status."""
        session_info = self.check_session()
        overall = "degraded" if session_info["last_error"] else "healthy"

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "source": self.check_source(),
            },
            "session": session_info,
        }


@router.get("")
def health_check(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """
    Health check endpoint.

    Returns API, camera source and session status.
    """
    controller = HealthController(orchestrator)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
