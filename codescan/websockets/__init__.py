"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for the scan session.

Handlers:
---------
- session: Session state, frame analysis and result notifications

==============================================================================
"""

from .session import router as session_router

__all__ = ["session_router"]
