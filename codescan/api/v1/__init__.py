"""
==============================================================================
API v1 Package
==============================================================================

Endpoints:
----------
- health: Health, readiness and liveness probes
- session: Scan session intents (enable, facing, capture, result)

==============================================================================
"""

from . import health, session

__all__ = ["health", "session"]
