"""
==============================================================================
Scanner Package - Code Detection Pipeline
==============================================================================

QR and linear barcode detection with OpenCV and pyzbar.

Classes:
--------
- PixelBuffer: Fixed-size RGBA frame copy
- MatrixDecoder: Single-symbol QR decoder
- FrameSampler: Per-refresh polling loop feeding the matrix decoder
- BarcodeLocator: Locate stage for linear barcodes
- StreamDecoderEngine: Worker-pool linear barcode detector
- ScanOrchestrator: Session owner and result arbiter

==============================================================================
"""

from .buffer import PixelBuffer
from .matrix import MatrixDecoder
from .sampler import FrameSampler
from .locator import BarcodeLocator
from .engine import DetectorHandle, EngineState, StreamDecoderEngine
from .orchestrator import EventPump, ScanOrchestrator

__all__ = [
    "PixelBuffer",
    "MatrixDecoder",
    "FrameSampler",
    "BarcodeLocator",
    "DetectorHandle",
    "EngineState",
    "StreamDecoderEngine",
    "EventPump",
    "ScanOrchestrator",
]
