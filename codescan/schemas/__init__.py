"""
==============================================================================
Schemas Package
==============================================================================

Pydantic models shared by the scanner pipeline and the API.

==============================================================================
"""

from .common import FacingRequest, SessionResponse
from .scan import (
    BoundingBox,
    DecodedCode,
    DetectedEvent,
    EngineEvent,
    ErrorKind,
    FacingMode,
    LinearSymbology,
    LocatorPrecision,
    ProcessedEvent,
    ScanLine,
    ScanSession,
    SessionNotification,
    StreamEngineConfig,
    Symbology,
)

__all__ = [
    "SessionResponse",
    "FacingRequest",
    "BoundingBox",
    "DecodedCode",
    "DetectedEvent",
    "EngineEvent",
    "ErrorKind",
    "FacingMode",
    "LinearSymbology",
    "LocatorPrecision",
    "ProcessedEvent",
    "ScanLine",
    "ScanSession",
    "SessionNotification",
    "StreamEngineConfig",
    "Symbology",
]
