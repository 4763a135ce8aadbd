"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides scripted frame sources, synthetic QR / Code-128 frames, settings,
orchestrator and API client fixtures.

==============================================================================
"""

import threading
import time
from typing import Generator, List, Optional

import barcode
import cv2
import numpy as np
import pytest
from barcode.writer import ImageWriter
from fastapi.testclient import TestClient

from codescan.camera.source import Frame, FrameSource
from codescan.config import Settings
from codescan.core import exceptions
from codescan.core.dependencies import get_orchestrator
from codescan.main import app
from codescan.scanner.orchestrator import ScanOrchestrator
from codescan.schemas.scan import FacingMode


FRAME_WIDTH = 640
FRAME_HEIGHT = 480


# ============================================================================
# FRAME BUILDERS
# ============================================================================

def blank_frame() -> np.ndarray:
    """White BGR frame."""
    return np.full((FRAME_HEIGHT, FRAME_WIDTH, 3), 255, dtype=np.uint8)


def place_on_canvas(gray: np.ndarray) -> np.ndarray:
    """Center a grayscale symbol image on a white BGR frame."""
    height, width = gray.shape[:2]
    scale = min(1.0, (FRAME_WIDTH - 80) / width, (FRAME_HEIGHT - 80) / height)
    if scale < 1.0:
        gray = cv2.resize(
            gray, (int(width * scale), int(height * scale)), interpolation=cv2.INTER_AREA
        )
        height, width = gray.shape[:2]

    canvas = np.full((FRAME_HEIGHT, FRAME_WIDTH), 255, dtype=np.uint8)
    top = (FRAME_HEIGHT - height) // 2
    left = (FRAME_WIDTH - width) // 2
    canvas[top:top + height, left:left + width] = gray
    return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)


def make_qr_frame(payload: str = "HELLO") -> np.ndarray:
    """BGR frame with a clean QR code."""
    symbol = cv2.QRCodeEncoder.create().encode(payload)
    symbol = cv2.resize(
        symbol, None, fx=8, fy=8, interpolation=cv2.INTER_NEAREST
    )
    symbol = cv2.copyMakeBorder(
        symbol, 32, 32, 32, 32, cv2.BORDER_CONSTANT, value=255
    )
    return place_on_canvas(symbol)


def render_code128(payload: str = "123456789") -> np.ndarray:
    """Grayscale Code-128 image without human-readable text."""
    image = barcode.Code128(payload, writer=ImageWriter()).render({
        "module_width": 0.254,
        "module_height": 15,
        "quiet_zone": 6.5,
        "dpi": 300,
        "write_text": False,
    })
    return np.array(image.convert("L"), dtype=np.uint8)


def make_code128_frame(payload: str = "123456789") -> np.ndarray:
    """BGR frame with a full Code-128 barcode."""
    return place_on_canvas(render_code128(payload))


def make_partial_code128_frame(payload: str = "123456789", visible: float = 0.6) -> np.ndarray:
    """BGR frame with only the left part of a Code-128 barcode (undecodable)."""
    symbol = render_code128(payload)
    cut = int(symbol.shape[1] * visible)
    partial = symbol.copy()
    partial[:, cut:] = 255
    return place_on_canvas(partial)


def barcode_stream() -> List[np.ndarray]:
    """Frames 10-13 show a partial barcode, frame 14 the full one."""
    return [make_partial_code128_frame() for _ in range(4)] + [make_code128_frame()]


# ============================================================================
# SCRIPTED FRAME SOURCE
# ============================================================================

class ScriptedFrameSource(FrameSource):
    """
    In-memory frame source replaying a fixed list of frames.

    ``next_frame`` hands out frames in order starting at ``start_index``;
    ``current_frame`` returns the most recently handed out frame. Once the
    script is exhausted ``next_frame`` keeps returning None.
    """

    def __init__(
        self,
        frames: List[np.ndarray],
        start_index: int = 0,
        fail_with: Optional[Exception] = None,
    ) -> None:
        super().__init__()
        self._frames = frames
        self._start_index = start_index
        self._fail_with = fail_with
        self._cursor = 0
        self._lock = threading.Lock()
        self.start_calls = 0
        self.stop_calls = 0
        self.active_streams = 0
        self.facings: List[FacingMode] = []

    def start_stream(self, facing: FacingMode) -> "ScriptedFrameSource":
        if self._fail_with is not None:
            raise self._fail_with
        with self._lock:
            self.start_calls += 1
            self.facings.append(facing)
            if not self.is_streaming:
                self.active_streams += 1
            self._cursor = 0
            self._set_streaming(True, facing)
        return self

    def stop_stream(self) -> None:
        with self._lock:
            self.stop_calls += 1
            if self.is_streaming:
                self.active_streams -= 1
            self._set_streaming(False)

    def current_frame(self) -> np.ndarray:
        with self._lock:
            if not self.is_streaming:
                raise exceptions.source_not_ready()
            return self._frames[min(self._cursor, len(self._frames) - 1)].copy()

    def next_frame(self, after_index: int, timeout: float) -> Optional[Frame]:
        with self._lock:
            if not self.is_streaming:
                return None
            index = max(after_index + 1, self._start_index)
            position = index - self._start_index
            if position < len(self._frames):
                self._cursor = position
                return Frame(index, self._frames[position], time.monotonic())

        time.sleep(min(timeout, 0.01))
        return None


# ============================================================================
# FRAME FIXTURES
# ============================================================================

@pytest.fixture(scope="session")
def blank_image() -> np.ndarray:
    """Frame without any symbol."""
    return blank_frame()


@pytest.fixture(scope="session")
def qr_frame() -> np.ndarray:
    """Frame with a QR code carrying "HELLO"."""
    return make_qr_frame("HELLO")


@pytest.fixture(scope="session")
def code128_frame() -> np.ndarray:
    """Frame with a Code-128 barcode carrying "123456789"."""
    return make_code128_frame("123456789")


@pytest.fixture(scope="session")
def partial_code128_frame() -> np.ndarray:
    """Frame with a truncated Code-128 barcode."""
    return make_partial_code128_frame("123456789")


# ============================================================================
# COMPONENT FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Fast, deterministic settings for pipeline tests."""
    return Settings(
        front_camera="0",
        back_camera="1",
        default_facing=FacingMode.FRONT,
        stream_readers="code_128,ean_13,code_39",
        worker_count=1,
        sample_frequency=120,
        refresh_rate_hz=100.0,
        frame_wait_seconds=0.05,
        join_timeout_seconds=2.0,
    )


@pytest.fixture
def qr_source(qr_frame: np.ndarray) -> ScriptedFrameSource:
    """Source that shows a QR code on every frame."""
    return ScriptedFrameSource([qr_frame])


@pytest.fixture
def barcode_source() -> ScriptedFrameSource:
    """Source replaying the Code-128 stream as frames 10-14."""
    return ScriptedFrameSource(barcode_stream(), start_index=10)


@pytest.fixture
def blank_source() -> ScriptedFrameSource:
    """Source that never shows a code."""
    return ScriptedFrameSource([blank_frame()])


@pytest.fixture
def orchestrator_factory(settings: Settings):
    """Build orchestrators and disable them after the test."""
    created: List[ScanOrchestrator] = []

    def factory(source: FrameSource, **kwargs) -> ScanOrchestrator:
        orchestrator = ScanOrchestrator(source, settings, **kwargs)
        created.append(orchestrator)
        return orchestrator

    yield factory

    for orchestrator in created:
        orchestrator.close()


# ============================================================================
# CLIENT FIXTURES
# ============================================================================

@pytest.fixture(scope="function")
def client_orchestrator(orchestrator_factory, blank_source) -> ScanOrchestrator:
    """Orchestrator served by the test client."""
    return orchestrator_factory(blank_source)


@pytest.fixture(scope="function")
def client(client_orchestrator: ScanOrchestrator) -> Generator[TestClient, None, None]:
    """Create test client with orchestrator override."""
    app.dependency_overrides[get_orchestrator] = lambda: client_orchestrator

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
