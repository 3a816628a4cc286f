from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol


class ScanState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    SCANNING = "scanning"
    ACCEPTED = "accepted"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.ACCEPTED, ScanState.STOPPED, ScanState.FAILED)


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    TARGET_MISSING = "target_missing"
    EMPTY_INPUT = "empty_input"


class FacingMode(str, Enum):
    ENVIRONMENT = "environment"
    USER = "user"

    @classmethod
    def parse(cls, value: str | FacingMode | None) -> FacingMode:
        if isinstance(value, FacingMode):
            return value
        if not value:
            return cls.ENVIRONMENT
        normalized = value.strip().lower()
        aliases = {"rear": cls.ENVIRONMENT, "back": cls.ENVIRONMENT, "front": cls.USER}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class Symbology(str, Enum):
    QR_CODE = "qr_code"
    DATA_MATRIX = "data_matrix"
    CODE_128 = "code_128"
    CODE_39 = "code_39"
    CODE_93 = "code_93"
    EAN_13 = "ean_13"
    EAN_8 = "ean_8"
    UPC_A = "upc_a"
    UPC_E = "upc_e"
    ITF = "itf"
    CODABAR = "codabar"

    @property
    def is_linear(self) -> bool:
        return self not in (Symbology.QR_CODE, Symbology.DATA_MATRIX)

    @classmethod
    def parse_many(cls, values: Iterable[str | Symbology]) -> frozenset[Symbology]:
        parsed: set[Symbology] = set()
        for value in values:
            if isinstance(value, Symbology):
                parsed.add(value)
                continue
            token = value.strip().lower().replace("-", "_")
            if token:
                parsed.add(cls(token))
        return frozenset(parsed)


DEFAULT_SYMBOLOGIES: frozenset[Symbology] = frozenset(
    {
        Symbology.QR_CODE,
        Symbology.CODE_128,
        Symbology.CODE_39,
        Symbology.EAN_13,
        Symbology.EAN_8,
        Symbology.UPC_A,
        Symbology.UPC_E,
    }
)

Point = tuple[int, int]


@dataclass(frozen=True, slots=True)
class DecodeCandidate:
    raw_text: str
    symbology: Symbology
    per_module_error_rates: tuple[float, ...] = ()
    polygon: tuple[Point, ...] = ()


@dataclass(frozen=True, slots=True)
class ZoomRange:
    min: float
    max: float
    step: float = 1.0

    def clamp(self, value: float) -> float:
        return max(self.min, min(self.max, value))


@dataclass(frozen=True, slots=True)
class ResolutionRange:
    min_width: int
    min_height: int
    max_width: int
    max_height: int


@dataclass(frozen=True, slots=True)
class CameraCapabilities:
    facing_mode: FacingMode
    resolution_range: ResolutionRange
    zoom_range: ZoomRange | None = None
    device_index: int = 0

    @property
    def supports_zoom(self) -> bool:
        return self.zoom_range is not None


@dataclass(frozen=True, slots=True)
class CameraConstraints:
    facing_mode: FacingMode = FacingMode.ENVIRONMENT
    exact: bool = False
    width: int = 1280
    height: int = 720

    def relaxed(self) -> CameraConstraints:
        return CameraConstraints(
            facing_mode=self.facing_mode,
            exact=False,
            width=self.width,
            height=self.height,
        )


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Tunable scanner parameters; the defaults come from field testing."""

    tick_rate: float = 12.0
    confidence_threshold: float = 0.10
    symbologies: frozenset[Symbology] = field(default_factory=lambda: DEFAULT_SYMBOLOGIES)
    facing_mode: FacingMode = FacingMode.ENVIRONMENT
    exact_facing: bool = False
    draw_locator: bool = True
    beep: bool = True

    @property
    def tick_interval(self) -> float:
        rate = max(1.0, min(30.0, float(self.tick_rate)))
        return 1.0 / rate


class RenderTarget(Protocol):
    """Surface the camera preview is drawn on."""

    def is_ready(self) -> bool: ...

    def render(self, frame: Any) -> None: ...

    def clear(self) -> None: ...
