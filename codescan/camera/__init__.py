"""
==============================================================================
Camera Package
==============================================================================

Frame sources and still capture.

Classes:
--------
- FrameSource: Source contract shared by both detection pathways
- CameraFrameSource: OpenCV VideoCapture implementation
- StillCapture: Encodes frames into downloadable images

==============================================================================
"""

from .source import Frame, FrameSource, CameraFrameSource
from .capture import CapturedImage, StillCapture

__all__ = [
    "Frame",
    "FrameSource",
    "CameraFrameSource",
    "CapturedImage",
    "StillCapture",
]
