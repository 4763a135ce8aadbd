"""
==============================================================================
Frame Sampler Module
==============================================================================

Cooperative polling loop feeding the matrix decoder.

Each tick copies the current frame into a reusable PixelBuffer and runs one
decode attempt. The loop runs on its own thread, one tick per display
refresh interval, and stops as soon as a code is decoded or ``cancel()`` is
called. Ticks never overlap.

==============================================================================
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from codescan.camera.source import FrameSource
from codescan.core import exceptions
from codescan.schemas.scan import DecodedCode
from .buffer import PixelBuffer
from .matrix import MatrixDecoder


# Module logger
logger = logging.getLogger(__name__)


class FrameSampler:
    """
    Frame sampling loop for single-shot matrix decoding.

    Attributes:
        ticks: Number of completed decode attempts

    Example:
        >>> sampler = FrameSampler(source, MatrixDecoder(), on_code_found)
        >>> sampler.start()
        >>> sampler.cancel()
    """

    def __init__(
        self,
        source: FrameSource,
        decoder: MatrixDecoder,
        on_code_found: Callable[[DecodedCode], object],
        width: int = 640,
        height: int = 480,
        refresh_rate_hz: float = 60.0,
        join_timeout: float = 2.0,
    ) -> None:
        self._source = source
        self._decoder = decoder
        self._on_code_found = on_code_found
        self._buffer = PixelBuffer(width, height)
        self._interval = 1.0 / refresh_rate_hz
        self._join_timeout = join_timeout
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    # =========================================================================
    # SINGLE TICK
    # =========================================================================

    def tick(self) -> Optional[DecodedCode]:
        """
        Run one copy-and-decode attempt.

        Returns:
            The decoded code, or None for a miss

        Raises:
            SourceNotReady: The source is not streaming yet
        """
        if not self._source.is_streaming:
            raise exceptions.source_not_ready()

        self._buffer.fill_from(self._source.current_frame())
        code = self._decoder.decode(self._buffer)
        self.ticks += 1

        if code is not None:
            logger.info(f"🔳 Matrix code decoded: {code.payload!r}")
            self._on_code_found(code)

        return code

    # =========================================================================
    # LOOP CONTROL
    # =========================================================================

    def start(self) -> None:
        """Start the sampling loop on a background thread. One-shot."""
        if self._thread is not None or self._cancel_event.is_set():
            return

        self._thread = threading.Thread(
            target=self._run, name="frame-sampler", daemon=True
        )
        self._thread.start()
        logger.debug("Frame sampler started")

    def cancel(self) -> None:
        """
        Stop rescheduling ticks. Idempotent.

        Safe to call from the sampler thread itself; the in-flight tick
        finishes and the loop exits.
        """
        self._cancel_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                logger.warning("Frame sampler did not stop in time")

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._cancel_event.is_set()
        )

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _run(self) -> None:
        while not self._cancel_event.is_set():
            started = time.monotonic()

            try:
                if self.tick() is not None:
                    break
            except exceptions.SourceNotReady:
                logger.debug("Source not ready, skipping tick")
            except Exception as e:
                logger.error(f"Sampler tick error: {e}")

            # Wait for the next refresh slot
            elapsed = time.monotonic() - started
            self._cancel_event.wait(max(0.0, self._interval - elapsed))

        logger.debug(f"Frame sampler stopped after {self.ticks} ticks")
