"""
==============================================================================
Stream Decoder Engine Module
==============================================================================

Continuous multi-symbology linear barcode detection on the live stream.

State Machine:
--------------
    UNINITIALIZED -> INITIALIZING -> RUNNING -> DETECTED | STOPPED | FAILED

Workers:
--------
``worker_count`` threads share read access to the frame source. They claim
frames through a shared cursor (no frame is analyzed twice) throttled to
``sample_frequency`` frames per second, then run the two-stage algorithm:

1. locate: candidate boxes (BarcodeLocator, optionally half-sampled)
2. decode: pyzbar restricted to the enabled readers, per padded box

Events:
-------
Workers never call back into the caller. They push ProcessedEvent and
DetectedEvent messages onto ``engine.events`` (a ``queue.Queue``).
Publication is serialized: the first DetectedEvent moves the engine to
DETECTED and stops the pool; anything published afterwards is dropped.

==============================================================================
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

import cv2
import numpy as np
from pyzbar.pyzbar import ZBarSymbol, decode

from codescan.camera.source import Frame, FrameSource
from codescan.core import exceptions
from codescan.schemas.scan import (
    BoundingBox,
    DecodedCode,
    DetectedEvent,
    EngineEvent,
    ProcessedEvent,
    ScanLine,
    StreamEngineConfig,
    Symbology,
)
from .locator import BarcodeLocator


# Module logger
logger = logging.getLogger(__name__)


class EngineState(str, enum.Enum):
    """Stream decoder engine lifecycle states."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    RUNNING = "running"
    DETECTED = "detected"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class DetectorHandle:
    """
    Lifecycle handle for one engine run.

    Holds the worker threads and the stop signal; released by ``stop()``.
    """
    workers: List[threading.Thread] = field(default_factory=list)
    stop_event: threading.Event = field(default_factory=threading.Event)
    released: bool = False

    @property
    def live_workers(self) -> int:
        return sum(1 for worker in self.workers if worker.is_alive())


class StreamDecoderEngine:
    """
    Worker-pool linear barcode detector.

    Attributes:
        events: Channel of ProcessedEvent / DetectedEvent messages
        state: Current EngineState

    Example:
        >>> engine = StreamDecoderEngine(source)
        >>> engine.initialize(settings.engine_config(FacingMode.BACK))
        >>> engine.start()
        >>> event = engine.events.get(timeout=5)
        >>> engine.stop()
    """

    # Fraction of the box size added around each candidate before decoding
    BOX_PADDING = 0.15
    MIN_PADDING_PX = 16

    def __init__(
        self,
        source: FrameSource,
        frame_wait: float = 0.5,
        join_timeout: float = 2.0,
    ) -> None:
        self._source = source
        self._frame_wait = frame_wait
        self._join_timeout = join_timeout
        self._config: Optional[StreamEngineConfig] = None
        self._locator: Optional[BarcodeLocator] = None
        self._symbols: List[ZBarSymbol] = []
        self._handle: Optional[DetectorHandle] = None
        self._state = EngineState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._claim_lock = threading.Lock()
        self._last_index = -1
        self._next_claim_at = 0.0
        self.events: "queue.Queue[EngineEvent]" = queue.Queue()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def config(self) -> Optional[StreamEngineConfig]:
        return self._config

    @property
    def live_workers(self) -> int:
        handle = self._handle
        return handle.live_workers if handle is not None else 0

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self, config: StreamEngineConfig) -> "StreamDecoderEngine":
        """
        Validate ``config`` and prepare the worker pool.

        Raises:
            InitializationError: Engine already used, no stream, facing
                mismatch, no readers or non-positive worker count. The
                engine is left in FAILED.
        """
        with self._state_lock:
            if self._state != EngineState.UNINITIALIZED:
                raise exceptions.initialization_failed(
                    f"engine is {self._state.value}, expected uninitialized"
                )
            self._state = EngineState.INITIALIZING

        try:
            reason = self._validate(config)
            if reason:
                raise exceptions.initialization_failed(reason)

            self._config = config
            self._locator = BarcodeLocator(config.locator_precision)
            self._symbols = [
                getattr(ZBarSymbol, reader.zbar_name) for reader in sorted(config.readers)
            ]

            handle = DetectorHandle()
            for number in range(config.worker_count):
                handle.workers.append(threading.Thread(
                    target=self._worker_loop,
                    args=(handle.stop_event,),
                    name=f"stream-decoder-{number}",
                    daemon=True,
                ))
            self._handle = handle

        except exceptions.InitializationError as e:
            with self._state_lock:
                self._state = EngineState.FAILED
            logger.error(f"❌ {e.message}")
            raise

        logger.info(
            f"Stream decoder initialized: {config.worker_count} workers, "
            f"readers={','.join(sorted(r.value for r in config.readers))}"
        )
        return self

    def _validate(self, config: StreamEngineConfig) -> Optional[str]:
        if config.worker_count <= 0:
            return f"worker count must be positive, got {config.worker_count}"
        if not config.readers:
            return "no readers enabled"
        if not self._source.is_streaming:
            return "stream unavailable"
        if self._source.facing is not None and self._source.facing != config.facing_mode:
            return (
                f"stream is {self._source.facing.value}-facing, "
                f"config expects {config.facing_mode.value}"
            )
        return None

    def start(self) -> None:
        """Start the workers prepared by ``initialize``."""
        with self._state_lock:
            if self._state != EngineState.INITIALIZING or self._handle is None:
                raise exceptions.initialization_failed(
                    f"cannot start engine in state {self._state.value}"
                )
            self._state = EngineState.RUNNING
            for worker in self._handle.workers:
                worker.start()

        logger.info("▶️ Stream decoder running")

    def stop(self) -> None:
        """
        Move to STOPPED and release the DetectorHandle. Idempotent.

        Joins every worker except the calling thread.
        """
        with self._state_lock:
            if self._state == EngineState.STOPPED:
                return
            self._state = EngineState.STOPPED
            handle = self._handle

        if handle is None or handle.released:
            return

        handle.stop_event.set()
        current = threading.current_thread()

        for worker in handle.workers:
            if worker is current or worker.ident is None:
                continue
            worker.join(timeout=self._join_timeout)
            if worker.is_alive():
                logger.warning(f"{worker.name} did not stop in time")

        handle.released = True
        logger.info("🛑 Stream decoder stopped")

    # =========================================================================
    # WORKERS
    # =========================================================================

    def _worker_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            frame = self._claim_frame(stop_event)
            if frame is None:
                continue

            try:
                event = self.analyze(frame)
            except Exception as e:
                logger.error(f"Frame {frame.index} analysis error: {e}")
                continue

            self._publish(event, stop_event)

    def _claim_frame(self, stop_event: threading.Event) -> Optional[Frame]:
        """Claim the next unseen frame, throttled to ``sample_frequency``."""
        with self._claim_lock:
            delay = self._next_claim_at - time.monotonic()
            if delay > 0 and stop_event.wait(delay):
                return None

            frame = self._source.next_frame(self._last_index, timeout=self._frame_wait)
            if frame is None or stop_event.is_set():
                return None

            self._last_index = frame.index
            self._next_claim_at = time.monotonic() + 1.0 / self._config.sample_frequency
            return frame

    def _publish(self, event: EngineEvent, stop_event: threading.Event) -> None:
        with self._state_lock:
            if self._state != EngineState.RUNNING:
                logger.debug(f"Dropping late {event.kind} event (frame {event.frame_index})")
                return

            if isinstance(event, DetectedEvent):
                self._state = EngineState.DETECTED
                stop_event.set()
                logger.info(
                    f"📦 Barcode detected on frame {event.frame_index}: "
                    f"{event.code.payload!r} ({event.code.format})"
                )

            self.events.put(event)

    # =========================================================================
    # TWO-STAGE ANALYSIS
    # =========================================================================

    def analyze(self, frame: Frame) -> EngineEvent:
        """
        Locate then decode one frame.

        Args:
            frame: Frame from the source

        Returns:
            DetectedEvent for the first decoded box, else ProcessedEvent
        """
        if self._config is None:
            raise exceptions.initialization_failed("engine is not initialized")

        gray = frame.image
        if gray.ndim == 3:
            gray = cv2.cvtColor(gray, cv2.COLOR_BGR2GRAY)

        boxes = self._locate(gray)

        for box in boxes:
            code = self._decode_box(gray, box)
            if code is not None:
                return DetectedEvent(
                    frame_index=frame.index,
                    code=code,
                    box=box,
                    line=ScanLine.through(box),
                )

        best = boxes[0] if boxes else None
        return ProcessedEvent(
            frame_index=frame.index,
            boxes=tuple(boxes),
            box=best,
            line=ScanLine.through(best) if best is not None else None,
        )

    def _locate(self, gray: np.ndarray) -> List[BoundingBox]:
        height, width = gray.shape[:2]

        if not self._config.locate:
            return [BoundingBox.from_rect(0, 0, width, height)]

        if self._config.half_sampling:
            small = cv2.resize(gray, (width // 2, height // 2), interpolation=cv2.INTER_AREA)
            return [box.scaled(2.0) for box in self._locator.locate(small)]

        return self._locator.locate(gray)

    def _crop(self, gray: np.ndarray, box: BoundingBox) -> np.ndarray:
        """Box plus quiet-zone padding, clipped to the frame."""
        height, width = gray.shape[:2]
        pad_x = max(self.MIN_PADDING_PX, int(box.width * self.BOX_PADDING))
        pad_y = max(self.MIN_PADDING_PX, int(box.height * self.BOX_PADDING))

        x0 = max(0, box.x - pad_x)
        y0 = max(0, box.y - pad_y)
        x1 = min(width, box.x + box.width + pad_x)
        y1 = min(height, box.y + box.height + pad_y)
        return gray[y0:y1, x0:x1]

    def _decode_box(self, gray: np.ndarray, box: BoundingBox) -> Optional[DecodedCode]:
        crop = self._crop(gray, box)
        if crop.size == 0:
            return None

        for barcode in decode(crop, symbols=self._symbols):
            try:
                payload = barcode.data.decode("utf-8")
            except UnicodeDecodeError:
                payload = barcode.data.decode("latin-1")

            if not payload:
                continue

            return DecodedCode(
                payload=payload,
                symbology=Symbology.LINEAR,
                format=barcode.type,
                source_boxes=(box,),
            )

        return None
