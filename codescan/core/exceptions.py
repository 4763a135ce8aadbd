"""
Application Exception Handling

AppException base class for all application errors with FastAPI integration,
plus the scanner error taxonomy.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codescan.schemas.scan import ErrorKind


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Provides consistent error response format across the entire API.

    Usage:
        raise AppException("Session not enabled", "SESSION_DISABLED", 409)

    Error Codes:
        Source:
            - SOURCE_UNAVAILABLE (503)
            - SOURCE_NOT_READY (409)

        Stream decoder:
            - INITIALIZATION_ERROR (500)

        General:
            - VALIDATION_ERROR (422)
            - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "SOURCE_NOT_READY")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


class ScanError(AppException):
    """Base class for detection pipeline errors that map to an ErrorKind."""

    kind: ErrorKind


class SourceUnavailable(ScanError):
    """Camera permission denied or device busy/missing."""

    kind = ErrorKind.SOURCE_UNAVAILABLE

    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"

    def __init__(self, message: str, reason: str = DEVICE_UNAVAILABLE, **details: Any):
        super().__init__(
            message,
            "SOURCE_UNAVAILABLE",
            503,
            {"reason": reason, **details}
        )
        self.reason = reason


class SourceNotReady(ScanError):
    """Frame requested before the stream delivered one."""

    kind = ErrorKind.SOURCE_NOT_READY

    def __init__(self, message: str = "Frame source is not streaming"):
        super().__init__(message, "SOURCE_NOT_READY", 409)


class InitializationError(ScanError):
    """Stream decoder engine could not start its workers."""

    kind = ErrorKind.INITIALIZATION_ERROR

    def __init__(self, message: str, **details: Any):
        super().__init__(message, "INITIALIZATION_ERROR", 500, details)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def permission_denied(device: Any = None) -> SourceUnavailable:
    """Create camera permission denied exception."""
    return SourceUnavailable(
        "Camera permission denied",
        SourceUnavailable.PERMISSION_DENIED,
        device=str(device) if device is not None else None,
    )


def device_unavailable(device: Any = None) -> SourceUnavailable:
    """Create camera unavailable exception."""
    return SourceUnavailable(
        f"Cannot open camera {device}" if device is not None else "Camera unavailable",
        SourceUnavailable.DEVICE_UNAVAILABLE,
        device=str(device) if device is not None else None,
    )


def source_not_ready() -> SourceNotReady:
    """Create source not ready exception."""
    return SourceNotReady()


def initialization_failed(reason: str) -> InitializationError:
    """Create stream decoder initialization exception."""
    return InitializationError(
        f"Stream decoder failed to start: {reason}",
        reason=reason,
    )


def internal_error(message: str = "Internal server error") -> AppException:
    """Create internal server error exception."""
    return AppException(message, "INTERNAL_ERROR", 500)
