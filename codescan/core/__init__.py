"""
==============================================================================
Core Package
==============================================================================

Core utilities and infrastructure for the application.

This package provides:
- Custom exception handling with consistent error responses
- Scanner error taxonomy (SourceUnavailable, SourceNotReady,
  InitializationError)
- FastAPI dependencies (see ``codescan.core.dependencies``)

Usage:
------
    from codescan.core import exceptions
    raise exceptions.device_unavailable(0)

==============================================================================
"""

from .exceptions import (
    AppException,
    InitializationError,
    ScanError,
    SourceNotReady,
    SourceUnavailable,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "InitializationError",
    "ScanError",
    "SourceNotReady",
    "SourceUnavailable",
    "register_exception_handlers",
]
