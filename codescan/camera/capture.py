"""
==============================================================================
Still Capture Module
==============================================================================

Encodes the current camera frame into a downloadable image.

Front-camera frames are mirrored so the photo matches the mirrored preview.

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from codescan.core import exceptions
from codescan.schemas.scan import FacingMode


# Module logger
logger = logging.getLogger(__name__)

_MEDIA_TYPES = {"png": "image/png", "jpeg": "image/jpeg"}
_EXTENSIONS = {"png": ".png", "jpeg": ".jpg"}


@dataclass(frozen=True)
class CapturedImage:
    """Encoded still image."""
    content: bytes
    media_type: str
    filename: str


class StillCapture:
    """
    Still image encoder.

    Example:
        >>> capture = StillCapture("png")
        >>> image = capture.capture(frame, FacingMode.FRONT)
        >>> image.filename
        'photo.png'
    """

    def __init__(
        self,
        image_format: str = "png",
        quality: int = 100,
        mirror_front: bool = True,
    ) -> None:
        if image_format not in _MEDIA_TYPES:
            raise ValueError(f"Unsupported capture format: {image_format}")
        self._format = image_format
        self._quality = quality
        self._mirror_front = mirror_front

    def capture(self, frame: np.ndarray, facing: FacingMode) -> CapturedImage:
        """
        Encode ``frame``.

        Args:
            frame: BGR frame from the source
            facing: Facing mode the frame came from

        Returns:
            CapturedImage with encoded bytes
        """
        if self._mirror_front and facing == FacingMode.FRONT:
            frame = cv2.flip(frame, 1)

        params = []
        if self._format == "jpeg":
            params = [cv2.IMWRITE_JPEG_QUALITY, self._quality]

        ok, encoded = cv2.imencode(_EXTENSIONS[self._format], frame, params)
        if not ok:
            raise exceptions.internal_error("Failed to encode still capture")

        logger.debug(f"Captured still ({self._format}, {encoded.size} bytes)")

        return CapturedImage(
            content=encoded.tobytes(),
            media_type=_MEDIA_TYPES[self._format],
            filename=f"photo{_EXTENSIONS[self._format]}",
        )
