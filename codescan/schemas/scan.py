"""
==============================================================================
Scan Schemas Module
==============================================================================

Value types shared by the detection pipeline and the API surface.

Enums:
------
- FacingMode: which physical camera supplies the stream
- Symbology: matrix (QR) or linear barcode
- LinearSymbology: stream decoder readers
- LocatorPrecision: locate stage granularity
- ErrorKind: session-level error categories

Models:
-------
- BoundingBox, ScanLine: detection geometry
- DecodedCode: immutable decode result
- ScanSession: orchestrator-owned session state
- StreamEngineConfig: stream decoder engine options
- ProcessedEvent, DetectedEvent: stream engine channel messages

==============================================================================
"""

from __future__ import annotations

import enum
from typing import FrozenSet, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


Point = Tuple[int, int]


# =============================================================================
# ENUMS
# =============================================================================

class FacingMode(str, enum.Enum):
    """Camera facing mode."""
    FRONT = "front"
    BACK = "back"

    @property
    def opposite(self) -> "FacingMode":
        """The other camera."""
        return FacingMode.BACK if self is FacingMode.FRONT else FacingMode.FRONT

    @property
    def label(self) -> str:
        """Human-readable camera name."""
        return "Front Cam" if self is FacingMode.FRONT else "Back Cam"


class Symbology(str, enum.Enum):
    """Decoder family that produced a result."""
    MATRIX = "matrix"
    LINEAR = "linear"


class LinearSymbology(str, enum.Enum):
    """
    Linear barcode readers supported by the stream decoder engine.

    Values map onto pyzbar ``ZBarSymbol`` members through ``zbar_name``.
    """
    CODE_128 = "code_128"
    EAN_13 = "ean_13"
    EAN_8 = "ean_8"
    CODE_39 = "code_39"
    UPC_A = "upc_a"
    UPC_E = "upc_e"
    CODE_93 = "code_93"
    I2OF5 = "i2of5"
    CODABAR = "codabar"

    @property
    def zbar_name(self) -> str:
        """Name of the matching ``pyzbar.pyzbar.ZBarSymbol`` member."""
        return _ZBAR_NAMES[self]


_ZBAR_NAMES = {
    LinearSymbology.CODE_128: "CODE128",
    LinearSymbology.EAN_13: "EAN13",
    LinearSymbology.EAN_8: "EAN8",
    LinearSymbology.CODE_39: "CODE39",
    LinearSymbology.UPC_A: "UPCA",
    LinearSymbology.UPC_E: "UPCE",
    LinearSymbology.CODE_93: "CODE93",
    LinearSymbology.I2OF5: "I25",
    LinearSymbology.CODABAR: "CODABAR",
}

DEFAULT_READERS: FrozenSet[LinearSymbology] = frozenset({
    LinearSymbology.CODE_128,
    LinearSymbology.EAN_13,
    LinearSymbology.EAN_8,
    LinearSymbology.CODE_39,
    LinearSymbology.UPC_A,
    LinearSymbology.CODE_93,
    LinearSymbology.I2OF5,
})


class LocatorPrecision(str, enum.Enum):
    """Locate stage granularity (kernel sizes of the box search)."""
    COARSE = "coarse"
    MEDIUM = "medium"
    FINE = "fine"


class ErrorKind(str, enum.Enum):
    """Session-level error categories stored in ``ScanSession.last_error``."""
    SOURCE_UNAVAILABLE = "source_unavailable"
    SOURCE_NOT_READY = "source_not_ready"
    INITIALIZATION_ERROR = "initialization_error"


# =============================================================================
# GEOMETRY
# =============================================================================

class BoundingBox(BaseModel):
    """
    Quadrilateral around a located symbol.

    Attributes:
        points: Corner points in image coordinates
    """

    model_config = ConfigDict(frozen=True)

    points: Tuple[Point, ...] = Field(..., min_length=2)

    @classmethod
    def from_rect(cls, x: int, y: int, width: int, height: int) -> "BoundingBox":
        """Create an axis-aligned box."""
        return cls(points=(
            (x, y),
            (x + width, y),
            (x + width, y + height),
            (x, y + height),
        ))

    @property
    def x(self) -> int:
        return min(p[0] for p in self.points)

    @property
    def y(self) -> int:
        return min(p[1] for p in self.points)

    @property
    def width(self) -> int:
        return max(p[0] for p in self.points) - self.x

    @property
    def height(self) -> int:
        return max(p[1] for p in self.points) - self.y

    @property
    def area(self) -> int:
        return self.width * self.height

    def scaled(self, factor: float) -> "BoundingBox":
        """Return the box with every coordinate multiplied by ``factor``."""
        return BoundingBox(points=tuple(
            (int(round(px * factor)), int(round(py * factor)))
            for px, py in self.points
        ))


class ScanLine(BaseModel):
    """Line across a box along which the decoder read the symbol."""

    model_config = ConfigDict(frozen=True)

    start: Point
    end: Point

    @classmethod
    def through(cls, box: BoundingBox) -> "ScanLine":
        """Horizontal line through the middle of ``box``."""
        mid_y = box.y + box.height // 2
        return cls(start=(box.x, mid_y), end=(box.x + box.width, mid_y))


# =============================================================================
# RESULTS
# =============================================================================

class DecodedCode(BaseModel):
    """
    Immutable decode result.

    Attributes:
        payload: Decoded text
        symbology: Decoder family (matrix or linear)
        format: Concrete symbology reported by the decoder (e.g. "CODE128")
        source_boxes: Geometry of the symbol in the source image
    """

    model_config = ConfigDict(frozen=True)

    payload: str
    symbology: Symbology
    format: Optional[str] = None
    source_boxes: Optional[Tuple[BoundingBox, ...]] = None


class ScanSession(BaseModel):
    """
    Top-level scanning state owned by the orchestrator.

    ``result`` is set at most once per session.
    """

    enabled: bool = False
    facing: FacingMode = FacingMode.FRONT
    last_error: Optional[ErrorKind] = None
    last_error_detail: Optional[str] = None
    result: Optional[DecodedCode] = None


# =============================================================================
# STREAM ENGINE
# =============================================================================

class StreamEngineConfig(BaseModel):
    """
    Stream decoder engine options.

    ``worker_count`` is not constrained here; the engine rejects
    non-positive values at initialization.
    """

    model_config = ConfigDict(frozen=True)

    readers: FrozenSet[LinearSymbology] = DEFAULT_READERS
    worker_count: int = 4
    sample_frequency: int = Field(default=10, ge=1)
    facing_mode: FacingMode = FacingMode.FRONT
    locator_precision: LocatorPrecision = LocatorPrecision.MEDIUM
    half_sampling: bool = True
    locate: bool = True

    @field_validator("readers", mode="before")
    @classmethod
    def validate_readers(cls, value):
        """Accept reader names with or without the "_reader" suffix."""
        if isinstance(value, str):
            value = [value]
        readers = []
        for reader in value:
            if isinstance(reader, str):
                reader = reader.strip().lower().removesuffix("_reader")
            readers.append(reader)
        return frozenset(readers)


class ProcessedEvent(BaseModel):
    """
    Diagnostic event for a frame that was analyzed without a decode.

    Attributes:
        frame_index: Source frame index
        boxes: All candidate boxes from the locate stage
        box: Best candidate, if any
        line: Scan line across ``box``
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["processed"] = "processed"
    frame_index: int
    boxes: Tuple[BoundingBox, ...] = ()
    box: Optional[BoundingBox] = None
    line: Optional[ScanLine] = None


class DetectedEvent(BaseModel):
    """Terminal event carrying the first decoded linear barcode."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["detected"] = "detected"
    frame_index: int
    code: DecodedCode
    box: Optional[BoundingBox] = None
    line: Optional[ScanLine] = None


EngineEvent = Union[ProcessedEvent, DetectedEvent]


class SessionNotification(BaseModel):
    """Message pushed by the orchestrator to session listeners."""

    type: Literal["state", "processed", "result", "error"]
    session: ScanSession
    processed: Optional[ProcessedEvent] = None
