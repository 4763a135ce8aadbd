"""
==============================================================================
Scan Orchestrator Module
==============================================================================

Owns the ScanSession and the lifecycle of both detection pathways.

Pathways:
---------
- FrameSampler + MatrixDecoder: one QR attempt per display refresh
- StreamDecoderEngine: worker pool for linear barcodes, drained by an
  event pump thread owned by the orchestrator

Arbitration:
------------
``on_code_found`` is the only place a result is written. A compare-and-set
under ``_state_lock`` plus a generation token guarantees that the first
result of the current session wins; results from a torn-down pipeline and
every later caller are ignored.

Locking:
--------
- ``_lifecycle_lock`` (RLock): serializes enable/disable/set_facing
- ``_state_lock``: guards session fields and component references; never
  held while joining threads
- ``_teardown_done``: cleared while a winning result releases the previous
  pipeline; ``enable`` waits for it before acquiring the stream

==============================================================================
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional, Tuple

from codescan.camera.capture import CapturedImage, StillCapture
from codescan.camera.source import FrameSource
from codescan.config import Settings, get_settings
from codescan.core import exceptions
from codescan.schemas.scan import (
    DecodedCode,
    DetectedEvent,
    FacingMode,
    ProcessedEvent,
    ScanSession,
    SessionNotification,
)
from .engine import StreamDecoderEngine
from .matrix import MatrixDecoder
from .sampler import FrameSampler


# Module logger
logger = logging.getLogger(__name__)

Listener = Callable[[SessionNotification], None]
EngineFactory = Callable[[FrameSource], StreamDecoderEngine]


class EventPump:
    """
    Drains a stream engine's event channel on its own thread.

    One-shot: once stopped it cannot be restarted.
    """

    POLL_SECONDS = 0.1

    def __init__(
        self,
        engine: StreamDecoderEngine,
        on_detected: Callable[[DecodedCode], object],
        on_processed: Callable[[ProcessedEvent], object],
        join_timeout: float = 2.0,
    ) -> None:
        self._engine = engine
        self._on_detected = on_detected
        self._on_processed = on_processed
        self._join_timeout = join_timeout
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._stop_event.is_set() or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="event-pump", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self._engine.events.get(timeout=self.POLL_SECONDS)
            except queue.Empty:
                continue

            if isinstance(event, DetectedEvent):
                self._on_detected(event.code)
            else:
                self._on_processed(event)


class ScanOrchestrator:
    """
    Scan session owner and result arbiter.

    Example:
        >>> orchestrator = ScanOrchestrator(CameraFrameSource(settings.device_for))
        >>> orchestrator.enable()
        >>> code = orchestrator.wait_for_result(timeout=30)
        >>> orchestrator.disable()
    """

    def __init__(
        self,
        source: FrameSource,
        settings: Optional[Settings] = None,
        matrix_decoder: Optional[MatrixDecoder] = None,
        engine_factory: Optional[EngineFactory] = None,
        still_capture: Optional[StillCapture] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._source = source
        self._matrix_decoder = matrix_decoder or MatrixDecoder()
        self._engine_factory = engine_factory or self._default_engine
        self._still_capture = still_capture or StillCapture(
            self._settings.capture_format,
            self._settings.capture_quality,
            self._settings.mirror_front,
        )

        self._session = ScanSession(facing=self._settings.default_facing)
        self._generation = 0
        self._sampler: Optional[FrameSampler] = None
        self._engine: Optional[StreamDecoderEngine] = None
        self._pump: Optional[EventPump] = None

        self._lifecycle_lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._result_event = threading.Event()
        self._teardown_done = threading.Event()
        self._teardown_done.set()
        self._listeners: List[Listener] = []

    def _default_engine(self, source: FrameSource) -> StreamDecoderEngine:
        return StreamDecoderEngine(
            source,
            frame_wait=self._settings.frame_wait_seconds,
            join_timeout=self._settings.join_timeout_seconds,
        )

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    def state(self) -> ScanSession:
        """Snapshot of the session."""
        with self._state_lock:
            return self._session.model_copy()

    @property
    def source(self) -> FrameSource:
        return self._source

    @property
    def sampler(self) -> Optional[FrameSampler]:
        return self._sampler

    @property
    def engine(self) -> Optional[StreamDecoderEngine]:
        return self._engine

    def add_listener(self, listener: Listener) -> None:
        with self._state_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._state_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # =========================================================================
    # UI INTENTS
    # =========================================================================

    def enable(self) -> ScanSession:
        """
        Start the stream and both detection pathways.

        Raises:
            SourceUnavailable: The camera could not be acquired. Recorded in
                ``last_error``; the session stays disabled.
                Unexpected stream errors are wrapped the same way.
        """
        with self._lifecycle_lock:
            if self._session.enabled:
                return self.state()

            facing = self._session.facing

            # A winning result may still be releasing the previous pipeline
            self._teardown_done.wait()

            try:
                self._source.start_stream(facing)
            except exceptions.SourceUnavailable as e:
                logger.error(f"❌ Enable failed: {e.message}")
                self._record_error(e)
                raise
            except Exception as e:
                error = exceptions.SourceUnavailable(
                    f"Camera unavailable: {e}",
                    exceptions.SourceUnavailable.DEVICE_UNAVAILABLE,
                )
                logger.error(f"❌ Enable failed: {error.message}")
                self._record_error(error)
                raise error from e

            with self._state_lock:
                self._generation += 1
                generation = self._generation
                self._session.enabled = True
                self._session.result = None
                self._session.last_error = None
                self._session.last_error_detail = None
                self._result_event.clear()

            sampler = FrameSampler(
                self._source,
                self._matrix_decoder,
                lambda code: self._accept(code, generation),
                width=self._settings.frame_width,
                height=self._settings.frame_height,
                refresh_rate_hz=self._settings.refresh_rate_hz,
                join_timeout=self._settings.join_timeout_seconds,
            )

            engine, pump = self._prepare_engine(facing, generation)

            with self._state_lock:
                current = generation == self._generation and self._session.enabled
                if current:
                    self._sampler, self._engine, self._pump = sampler, engine, pump
                    sampler.start()
                    if engine is not None:
                        engine.start()
                        pump.start()

            if not current:
                # A result arrived through on_code_found before the pathways started
                self._teardown(None, engine, pump)
                return self.state()

            logger.info(f"✅ Scanning enabled ({facing.label})")
            self._notify("state")
            return self.state()

    def _prepare_engine(
        self, facing: FacingMode, generation: int
    ) -> Tuple[Optional[StreamDecoderEngine], Optional[EventPump]]:
        engine = self._engine_factory(self._source)

        try:
            engine.initialize(self._settings.engine_config(facing))
        except exceptions.InitializationError as e:
            # Matrix pathway keeps running on its own
            engine.stop()
            self._record_error(e)
            return None, None

        pump = EventPump(
            engine,
            on_detected=lambda code: self._accept(code, generation),
            on_processed=self._on_processed,
            join_timeout=self._settings.join_timeout_seconds,
        )
        return engine, pump

    def disable(self) -> ScanSession:
        """
        Tear down both pathways and the stream; clear the result.

        Never raises.
        """
        with self._lifecycle_lock:
            with self._state_lock:
                self._generation += 1
                self._session.enabled = False
                self._session.result = None
                self._result_event.clear()
                components = self._detach_locked()

            self._teardown(*components)
            logger.info("⏹️ Scanning disabled")
            self._notify("state")
            return self.state()

    def toggle(self) -> ScanSession:
        """Flip the enabled state."""
        with self._lifecycle_lock:
            if self._session.enabled:
                return self.disable()
            return self.enable()

    def set_facing(self, mode: FacingMode) -> ScanSession:
        """
        Change facing mode.

        While enabled this is a full stop/restart: the stream must be
        re-acquired for the other camera.
        """
        with self._lifecycle_lock:
            if mode == self._session.facing:
                return self.state()

            if not self._session.enabled:
                with self._state_lock:
                    self._session.facing = mode
                logger.info(f"Facing preference set to {mode.value}")
                self._notify("state")
                return self.state()

            logger.info(f"🔄 Switching to {mode.label}")
            self.disable()
            with self._state_lock:
                self._session.facing = mode
            return self.enable()

    def toggle_facing(self) -> ScanSession:
        """Switch between front and back camera."""
        with self._lifecycle_lock:
            return self.set_facing(self._session.facing.opposite)

    def capture_still(self) -> CapturedImage:
        """
        Encode the current frame.

        Raises:
            SourceNotReady: The stream is not running
        """
        frame = self._source.current_frame()
        return self._still_capture.capture(frame, self._session.facing)

    def close(self) -> None:
        """Release everything on application shutdown."""
        self.disable()
        with self._state_lock:
            self._listeners.clear()

    # =========================================================================
    # RESULT ARBITRATION
    # =========================================================================

    def on_code_found(self, code: DecodedCode) -> bool:
        """
        Record ``code`` if it is the first result of the current session.

        Returns:
            True for the winning call, False for every other call
        """
        with self._state_lock:
            generation = self._generation
        return self._accept(code, generation)

    def _accept(self, code: DecodedCode, generation: int) -> bool:
        with self._state_lock:
            if (
                generation != self._generation
                or not self._session.enabled
                or self._session.result is not None
            ):
                logger.debug(f"Ignoring result {code.payload!r}")
                return False

            self._session.result = code
            self._session.enabled = False
            self._generation += 1
            components = self._detach_locked()
            self._teardown_done.clear()

        logger.info(f"🎯 Code found ({code.symbology.value}): {code.payload!r}")
        try:
            self._teardown(*components)
        finally:
            self._teardown_done.set()
        self._result_event.set()
        self._notify("result")
        return True

    def wait_for_result(self, timeout: Optional[float] = None) -> Optional[DecodedCode]:
        """Block until a result is recorded or ``timeout`` expires."""
        self._result_event.wait(timeout)
        with self._state_lock:
            return self._session.result

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _detach_locked(self) -> Tuple[
        Optional[FrameSampler], Optional[StreamDecoderEngine], Optional[EventPump]
    ]:
        components = (self._sampler, self._engine, self._pump)
        self._sampler = self._engine = self._pump = None
        return components

    def _teardown(
        self,
        sampler: Optional[FrameSampler],
        engine: Optional[StreamDecoderEngine],
        pump: Optional[EventPump],
    ) -> None:
        steps = [
            ("sampler", sampler.cancel if sampler else None),
            ("stream decoder", engine.stop if engine else None),
            ("event pump", pump.stop if pump else None),
            ("frame source", self._source.stop_stream),
        ]

        for name, stop in steps:
            if stop is None:
                continue
            try:
                stop()
            except Exception as e:
                logger.warning(f"Error stopping {name}: {e}")

    def _record_error(self, error: exceptions.ScanError) -> None:
        with self._state_lock:
            self._session.last_error = error.kind
            self._session.last_error_detail = error.message
        self._notify("error")

    def _on_processed(self, event: ProcessedEvent) -> None:
        logger.debug(
            f"Frame {event.frame_index}: {len(event.boxes)} candidate boxes"
        )
        self._notify("processed", processed=event)

    def _notify(self, kind: str, processed: Optional[ProcessedEvent] = None) -> None:
        with self._state_lock:
            listeners = list(self._listeners)
            session = self._session.model_copy()

        if not listeners:
            return

        notification = SessionNotification(type=kind, session=session, processed=processed)
        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.error(f"Session listener error: {e}")
