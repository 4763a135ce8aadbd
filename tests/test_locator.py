"""
==============================================================================
Barcode Locator Tests
==============================================================================

Tests for the locate stage of the stream decoder.

==============================================================================
"""

import cv2
import numpy as np
import pytest

from codescan.scanner.locator import BarcodeLocator
from codescan.schemas.scan import BoundingBox, LocatorPrecision, ScanLine


def to_gray(frame: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class TestBarcodeLocator:
    """Tests for candidate box detection."""

    def test_blank_frame_has_no_candidates(self, blank_image):
        """A uniform frame yields nothing."""
        assert BarcodeLocator().locate(to_gray(blank_image)) == []

    @pytest.mark.parametrize("precision", list(LocatorPrecision))
    def test_barcode_is_located(self, code128_frame, precision):
        """The barcode region is the largest candidate at every precision."""
        boxes = BarcodeLocator(precision).locate(to_gray(code128_frame))

        assert boxes
        best = boxes[0]
        # Symbol is centered on the 640x480 canvas
        assert best.x < 320 < best.x + best.width
        assert best.y < 240 < best.y + best.height
        assert best.width > best.height

    def test_partial_barcode_is_located(self, partial_code128_frame):
        """A truncated barcode is still a candidate."""
        assert BarcodeLocator().locate(to_gray(partial_code128_frame))

    def test_boxes_sorted_by_area(self, code128_frame):
        """Largest candidates come first."""
        boxes = BarcodeLocator(LocatorPrecision.FINE).locate(to_gray(code128_frame))
        areas = [box.area for box in boxes]
        assert areas == sorted(areas, reverse=True)

    def test_max_boxes(self, code128_frame):
        """Result list is capped."""
        boxes = BarcodeLocator(max_boxes=1).locate(to_gray(code128_frame))
        assert len(boxes) == 1


class TestGeometry:
    """Tests for box and scan line helpers."""

    def test_from_rect(self):
        """Axis-aligned boxes expose their rectangle."""
        box = BoundingBox.from_rect(10, 20, 100, 40)
        assert (box.x, box.y, box.width, box.height) == (10, 20, 100, 40)
        assert box.area == 4000

    def test_scaled(self):
        """Scaling multiplies every coordinate."""
        box = BoundingBox.from_rect(10, 20, 100, 40).scaled(2.0)
        assert (box.x, box.y, box.width, box.height) == (20, 40, 200, 80)

    def test_scan_line_through_middle(self):
        """Scan line crosses the box horizontally at mid height."""
        line = ScanLine.through(BoundingBox.from_rect(10, 20, 100, 40))
        assert line.start == (10, 40)
        assert line.end == (110, 40)
