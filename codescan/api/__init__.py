"""
==============================================================================
API Package
==============================================================================

REST endpoints under /api/v1.

==============================================================================
"""
