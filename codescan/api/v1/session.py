"""
==============================================================================
Scan Session Endpoints
==============================================================================

UI intents for the scanning session: toggle enabled, change facing mode,
capture a still image, read the current state and result.

Camera operations block, so these routes are plain ``def`` handlers and run
in FastAPI's threadpool.

==============================================================================
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from codescan.core.dependencies import get_orchestrator
from codescan.scanner.orchestrator import ScanOrchestrator
from codescan.schemas.common import FacingRequest, SessionResponse


router = APIRouter(prefix="/session", tags=["Session"])


class SessionController:
    """Controller for scan session operations."""

    def __init__(self, orchestrator: ScanOrchestrator):
        self._orchestrator = orchestrator

    def state(self) -> SessionResponse:
        return SessionResponse(session=self._orchestrator.state())

    def enable(self) -> SessionResponse:
        return SessionResponse(session=self._orchestrator.enable())

    def disable(self) -> SessionResponse:
        return SessionResponse(session=self._orchestrator.disable())

    def toggle(self) -> SessionResponse:
        return SessionResponse(session=self._orchestrator.toggle())

    def set_facing(self, request: FacingRequest) -> SessionResponse:
        return SessionResponse(session=self._orchestrator.set_facing(request.facing))

    def toggle_facing(self) -> SessionResponse:
        return SessionResponse(session=self._orchestrator.toggle_facing())

    def capture(self) -> Response:
        """Encode the current frame as a downloadable attachment."""
        image = self._orchestrator.capture_still()
        return Response(
            content=image.content,
            media_type=image.media_type,
            headers={"Content-Disposition": f'attachment; filename="{image.filename}"'},
        )

    def result(self, timeout: float) -> dict:
        """Wait up to ``timeout`` seconds for a result."""
        code = self._orchestrator.wait_for_result(timeout)
        return {
            "success": True,
            "found": code is not None,
            "result": code.model_dump(mode="json") if code else None,
        }


@router.get("", response_model=SessionResponse)
def get_session(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """Get the current session state."""
    return SessionController(orchestrator).state()


@router.post("/enable", response_model=SessionResponse)
def enable_session(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """Start the camera and both decoders."""
    return SessionController(orchestrator).enable()


@router.post("/disable", response_model=SessionResponse)
def disable_session(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """Stop scanning and release the camera."""
    return SessionController(orchestrator).disable()


@router.post("/toggle", response_model=SessionResponse)
def toggle_session(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """On/off button."""
    return SessionController(orchestrator).toggle()


@router.put("/facing", response_model=SessionResponse)
def set_facing(
    request: FacingRequest,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator)
):
    """Select the front or back camera."""
    return SessionController(orchestrator).set_facing(request)


@router.post("/facing/toggle", response_model=SessionResponse)
def toggle_facing(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """Facing button."""
    return SessionController(orchestrator).toggle_facing()


@router.post("/capture")
def capture_still(orchestrator: ScanOrchestrator = Depends(get_orchestrator)):
    """Photo button: download the current frame."""
    return SessionController(orchestrator).capture()


@router.get("/result")
def get_result(
    timeout: float = Query(0.0, ge=0, le=60),
    orchestrator: ScanOrchestrator = Depends(get_orchestrator)
):
    """Get the decoded code, optionally waiting for one."""
    return SessionController(orchestrator).result(timeout)
