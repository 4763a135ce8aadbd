"""
==============================================================================
Matrix Decoder Module
==============================================================================

Single-symbol QR decoding for one pixel buffer.

The decoder is pure: every call builds its own OpenCV ``QRCodeDetector``
and keeps nothing between calls, so an empty result never affects the next
attempt.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import cv2
import numpy as np

from codescan.schemas.scan import BoundingBox, DecodedCode, Symbology
from .buffer import PixelBuffer


# Module logger
logger = logging.getLogger(__name__)


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class MatrixDecoder:
    """
    QR code decoder.

    Example:
        >>> decoder = MatrixDecoder()
        >>> code = decoder.decode(buffer)
        >>> code.payload if code else None
        'HELLO'
    """

    FORMAT = "QRCODE"

    def decode(self, buffer: Union[PixelBuffer, np.ndarray]) -> Optional[DecodedCode]:
        """
        Locate and decode one QR symbol.

        Args:
            buffer: PixelBuffer or raw image (RGBA, BGR or gray)

        Returns:
            DecodedCode, or None if nothing was found or it was unreadable
        """
        if isinstance(buffer, PixelBuffer):
            gray = buffer.gray()
        elif buffer is None or buffer.size == 0:
            return None
        else:
            gray = _to_gray(buffer)

        try:
            payload, points, _ = cv2.QRCodeDetector().detectAndDecode(gray)
        except cv2.error as e:
            logger.debug(f"QR decode error: {e}")
            return None

        if not payload:
            return None

        boxes = None
        if points is not None and len(points):
            corners = np.asarray(points).reshape(-1, 2)
            boxes = (BoundingBox(points=tuple(
                (int(round(x)), int(round(y))) for x, y in corners
            )),)

        return DecodedCode(
            payload=payload,
            symbology=Symbology.MATRIX,
            format=self.FORMAT,
            source_boxes=boxes,
        )


def decode(buffer: Union[PixelBuffer, np.ndarray]) -> Optional[DecodedCode]:
    """Module-level shortcut for ``MatrixDecoder().decode``."""
    return MatrixDecoder().decode(buffer)
