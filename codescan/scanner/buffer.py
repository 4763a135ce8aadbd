"""Fixed-size RGBA pixel buffer filled from camera frames."""

from __future__ import annotations

import cv2
import numpy as np


class PixelBuffer:
    """
    Reusable ``height x width x 4`` RGBA buffer.

    The sampler owns one instance and refills it every tick; the array is
    never reallocated.
    """

    def __init__(self, width: int = 640, height: int = 480) -> None:
        self.width = width
        self.height = height
        self.data = np.zeros((height, width, 4), dtype=np.uint8)

    def fill_from(self, frame: np.ndarray) -> "PixelBuffer":
        """Resize ``frame`` (BGR, BGRA or gray) into the buffer as RGBA."""
        if frame.shape[1] != self.width or frame.shape[0] != self.height:
            frame = cv2.resize(frame, (self.width, self.height), interpolation=cv2.INTER_AREA)

        if frame.ndim == 2:
            code = cv2.COLOR_GRAY2RGBA
        elif frame.shape[2] == 4:
            code = cv2.COLOR_BGRA2RGBA
        else:
            code = cv2.COLOR_BGR2RGBA

        self.data[...] = cv2.cvtColor(frame, code)
        return self

    def gray(self) -> np.ndarray:
        """Grayscale view for decoders."""
        return cv2.cvtColor(self.data, cv2.COLOR_RGBA2GRAY)
