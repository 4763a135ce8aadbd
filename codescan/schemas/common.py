"""
==============================================================================
Common Schemas Module
==============================================================================

Request and response schemas for the session endpoints.

==============================================================================
"""

from pydantic import BaseModel, Field

from .scan import FacingMode, ScanSession


class SessionResponse(BaseModel):
    """Session snapshot response."""
    success: bool = Field(default=True)
    session: ScanSession


class FacingRequest(BaseModel):
    """Body for facing mode changes."""
    facing: FacingMode
