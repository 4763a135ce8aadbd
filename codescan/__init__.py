"""
==============================================================================
Code Scanner
==============================================================================

Camera code detection: QR (matrix) and linear barcode recognition from a
live video stream, with a FastAPI control surface.

==============================================================================
"""

__version__ = "1.0.0"
