"""
==============================================================================
Barcode Locator Module
==============================================================================

Locate stage of the stream decoder: coarse search for linear barcode regions.

Algorithm:
----------
1. Scharr gradients; keep strong vertical edges (|Gx| - |Gy|)
2. Box blur and Otsu threshold
3. Morphological close with a wide rectangle to merge the bars
4. Erode/dilate to drop small specks
5. External contours -> min-area rectangles -> candidate boxes

Precision presets trade recall for box granularity: coarse uses large
kernels (few, big boxes), fine uses small ones.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Dict, List, NamedTuple

import cv2
import numpy as np

from codescan.schemas.scan import BoundingBox, LocatorPrecision


# Module logger
logger = logging.getLogger(__name__)


class LocatorParams(NamedTuple):
    blur: int
    close_kernel: tuple
    erode_dilate: int
    min_area_ratio: float


PRECISION_PRESETS: Dict[LocatorPrecision, LocatorParams] = {
    LocatorPrecision.COARSE: LocatorParams(11, (31, 11), 4, 0.004),
    LocatorPrecision.MEDIUM: LocatorParams(9, (21, 7), 4, 0.002),
    LocatorPrecision.FINE: LocatorParams(5, (13, 5), 2, 0.001),
}


class BarcodeLocator:
    """
    Candidate box finder for linear barcodes.

    Example:
        >>> locator = BarcodeLocator(LocatorPrecision.MEDIUM)
        >>> boxes = locator.locate(gray)
    """

    def __init__(
        self,
        precision: LocatorPrecision = LocatorPrecision.MEDIUM,
        max_boxes: int = 8,
    ) -> None:
        self._params = PRECISION_PRESETS[precision]
        self._max_boxes = max_boxes

    def locate(self, gray: np.ndarray) -> List[BoundingBox]:
        """
        Find candidate barcode regions.

        Args:
            gray: Single-channel image

        Returns:
            Boxes sorted largest first
        """
        params = self._params

        grad_x = cv2.Scharr(gray, cv2.CV_32F, 1, 0)
        grad_y = cv2.Scharr(gray, cv2.CV_32F, 0, 1)
        gradient = cv2.subtract(np.abs(grad_x), np.abs(grad_y))
        gradient = cv2.convertScaleAbs(np.clip(gradient, 0, None))

        blurred = cv2.blur(gradient, (params.blur, params.blur))
        if not blurred.any():
            return []

        _, thresh = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, params.close_kernel)
        closed = cv2.morphologyEx(thresh, cv2.MORPH_CLOSE, kernel)
        closed = cv2.erode(closed, None, iterations=params.erode_dilate)
        closed = cv2.dilate(closed, None, iterations=params.erode_dilate)

        contours, _ = cv2.findContours(closed, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        min_area = params.min_area_ratio * gray.shape[0] * gray.shape[1]
        boxes = []

        for contour in contours:
            if cv2.contourArea(contour) < min_area:
                continue
            corners = cv2.boxPoints(cv2.minAreaRect(contour))
            boxes.append(BoundingBox(points=tuple(
                (int(round(x)), int(round(y))) for x, y in corners
            )))

        boxes.sort(key=lambda box: box.area, reverse=True)
        return boxes[:self._max_boxes]
