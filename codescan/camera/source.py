"""
==============================================================================
Frame Source Module
==============================================================================

Live video frame sources shared by the frame sampler and the stream decoder.

Classes:
--------
- Frame: One published video frame
- FrameSource: Abstract source contract (start/stop/current/next frame)
- CameraFrameSource: OpenCV VideoCapture source with a reader thread

Threading:
----------
A single reader thread owns the ``cv2.VideoCapture`` object. Consumers only
see copies of the newest frame, published under a ``threading.Condition``,
so any number of readers may share the stream without touching the device.

==============================================================================
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Union

import cv2
import numpy as np

from codescan.core import exceptions
from codescan.schemas.scan import FacingMode


# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """A published frame with its monotonically increasing index."""
    index: int
    image: np.ndarray
    timestamp: float


class FrameSource(ABC):
    """
    Contract for live video sources.

    Subclasses publish frames through ``_publish`` and the base class
    provides the blocking ``next_frame`` wait and ``current_frame`` snapshot.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._latest: Optional[Frame] = None
        self._next_index = 0
        self._streaming = False
        self._facing: Optional[FacingMode] = None

    # =========================================================================
    # STREAM LIFECYCLE
    # =========================================================================

    @abstractmethod
    def start_stream(self, facing: FacingMode) -> "FrameSource":
        """Acquire the device for ``facing``; raises SourceUnavailable."""

    @abstractmethod
    def stop_stream(self) -> None:
        """Release the device. Idempotent."""

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    @property
    def facing(self) -> Optional[FacingMode]:
        return self._facing

    # =========================================================================
    # FRAME ACCESS
    # =========================================================================

    def current_frame(self) -> np.ndarray:
        """
        Copy of the newest frame.

        Raises:
            SourceNotReady: Not streaming, or no frame arrived yet
        """
        with self._cond:
            if not self._streaming or self._latest is None:
                raise exceptions.source_not_ready()
            return self._latest.image.copy()

    def next_frame(self, after_index: int, timeout: float) -> Optional[Frame]:
        """
        Wait for a frame newer than ``after_index``.

        Args:
            after_index: Index of the last frame the caller has seen
            timeout: Max seconds to wait

        Returns:
            The newest frame, or None on timeout or when the stream stops
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: not self._streaming
                or (self._latest is not None and self._latest.index > after_index),
                timeout=timeout,
            )
            if not ready or not self._streaming:
                return None
            return self._latest

    # =========================================================================
    # PUBLISHING (subclasses)
    # =========================================================================

    def _publish(self, image: np.ndarray) -> Frame:
        """Publish a new frame and wake up waiting readers."""
        with self._cond:
            frame = Frame(self._next_index, image, time.monotonic())
            self._next_index += 1
            self._latest = frame
            self._cond.notify_all()
            return frame

    def _set_streaming(self, streaming: bool, facing: Optional[FacingMode] = None) -> None:
        with self._cond:
            self._streaming = streaming
            self._facing = facing if streaming else None
            if not streaming:
                self._latest = None
            self._cond.notify_all()


class CameraFrameSource(FrameSource):
    """
    OpenCV camera source.

    Attributes:
        device_resolver: Maps a facing mode to a VideoCapture device
        width, height: Requested capture resolution
        active_streams: Number of currently open captures (0 or 1)

    Example:
        >>> source = CameraFrameSource(settings.device_for)
        >>> source.start_stream(FacingMode.BACK)
        >>> frame = source.current_frame()
        >>> source.stop_stream()
    """

    def __init__(
        self,
        device_resolver: Callable[[FacingMode], Union[int, str]],
        width: int = 640,
        height: int = 480,
        join_timeout: float = 2.0,
    ) -> None:
        super().__init__()
        self._device_resolver = device_resolver
        self._width = width
        self._height = height
        self._join_timeout = join_timeout
        self._cap: Optional[cv2.VideoCapture] = None
        self._reader: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def active_streams(self) -> int:
        return 1 if self._cap is not None else 0

    def start_stream(self, facing: FacingMode) -> "CameraFrameSource":
        with self._lock:
            if self._cap is not None:
                if self._facing == facing:
                    return self
                self._release_locked()

            device = self._device_resolver(facing)
            cap = cv2.VideoCapture(device)

            if not cap.isOpened():
                cap.release()
                logger.error(f"Cannot open camera {device} ({facing.value})")
                raise exceptions.device_unavailable(device)

            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)

            self._cap = cap
            self._stop_event.clear()
            self._set_streaming(True, facing)
            self._reader = threading.Thread(
                target=self._read_loop,
                args=(cap,),
                name=f"camera-reader-{facing.value}",
                daemon=True,
            )
            self._reader.start()

        logger.info(f"📷 Camera {device} streaming ({facing.label})")
        return self

    def stop_stream(self) -> None:
        with self._lock:
            self._release_locked()

    def _release_locked(self) -> None:
        if self._cap is None:
            return

        self._stop_event.set()
        self._set_streaming(False)

        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=self._join_timeout)

        self._cap.release()
        self._cap = None
        self._reader = None
        logger.info("📷 Camera released")

    def _read_loop(self, cap: cv2.VideoCapture) -> None:
        failures = 0

        while not self._stop_event.is_set():
            ok, image = cap.read()
            if not ok or image is None:
                failures += 1
                if failures == 1:
                    logger.warning("Failed to read frame")
                self._stop_event.wait(0.05)
                continue

            failures = 0
            self._publish(image)
