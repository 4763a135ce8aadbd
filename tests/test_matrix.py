"""
==============================================================================
Matrix Decoder Tests
==============================================================================

Tests for the pixel buffer and single-shot QR decoding.

==============================================================================
"""

import numpy as np

from codescan.scanner import matrix
from codescan.scanner.buffer import PixelBuffer
from codescan.scanner.matrix import MatrixDecoder
from codescan.schemas.scan import Symbology


class TestPixelBuffer:
    """Tests for the reusable RGBA buffer."""

    def test_buffer_shape(self):
        """Buffer is height x width x 4."""
        buffer = PixelBuffer(320, 240)
        assert buffer.data.shape == (240, 320, 4)
        assert buffer.data.dtype == np.uint8

    def test_fill_resizes_without_reallocating(self, qr_frame):
        """Filling keeps the same array and scales the frame."""
        buffer = PixelBuffer(320, 240)
        data = buffer.data
        buffer.fill_from(qr_frame)
        assert buffer.data is data
        assert buffer.data[..., 3].min() == 255
        assert buffer.gray().shape == (240, 320)

    def test_fill_from_gray(self):
        """Grayscale frames are accepted."""
        buffer = PixelBuffer(64, 48)
        buffer.fill_from(np.zeros((48, 64), dtype=np.uint8))
        assert buffer.data[..., :3].max() == 0


class TestMatrixDecoder:
    """Tests for QR decoding."""

    def test_decode_hello(self, qr_frame):
        """A clean QR payload is decoded."""
        buffer = PixelBuffer().fill_from(qr_frame)
        code = MatrixDecoder().decode(buffer)

        assert code is not None
        assert code.payload == "HELLO"
        assert code.symbology == Symbology.MATRIX
        assert code.format == "QRCODE"

    def test_decode_reports_corners(self, qr_frame):
        """The result carries the symbol corners."""
        code = MatrixDecoder().decode(qr_frame)
        assert code.source_boxes is not None
        box = code.source_boxes[0]
        assert len(box.points) == 4
        assert box.width > 100

    def test_blank_buffer_returns_none(self, blank_image):
        """No symbol is a miss, not an error."""
        assert MatrixDecoder().decode(PixelBuffer()) is None
        assert MatrixDecoder().decode(blank_image) is None

    def test_empty_image_returns_none(self):
        """Empty arrays are ignored."""
        assert MatrixDecoder().decode(np.zeros((0, 0), dtype=np.uint8)) is None

    def test_decoder_keeps_no_state(self, qr_frame, blank_image):
        """A miss does not affect the next attempt."""
        decoder = MatrixDecoder()
        assert decoder.decode(blank_image) is None
        assert decoder.decode(qr_frame).payload == "HELLO"

    def test_module_shortcut(self, qr_frame):
        """Module-level decode matches the class."""
        assert matrix.decode(qr_frame).payload == "HELLO"
