from __future__ import annotations

import functools
import logging
import operator
import unicodedata
from typing import Any, Iterable, Protocol

import cv2

from locus_inventory.scanner.errors import ScannerError
from locus_inventory.scanner.quality import frame_error_rates
from locus_inventory.scanner.types import DecodeCandidate, Point, Symbology

logger = logging.getLogger(__name__)


class EngineUnavailable(ScannerError):
    """Raised when the decoding library for an engine cannot be loaded."""


class DecodeEngine(Protocol):
    name: str

    def decode(self, frame: Any, symbologies: frozenset[Symbology]) -> list[DecodeCandidate]: ...


def normalize_payload(raw: bytes | str | None) -> str:
    if not raw:
        return ""

    if isinstance(raw, str):
        decoded = raw
    else:
        try:
            decoded = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            decoded = bytes(raw).decode("utf-8", errors="ignore")

    normalized = unicodedata.normalize("NFC", decoded)
    return normalized.strip()


def build_candidate(
    frame: Any,
    text: str,
    symbology: Symbology,
    polygon: Iterable[Point],
) -> DecodeCandidate:
    points = tuple((int(x), int(y)) for x, y in polygon)
    rates: tuple[float, ...] = ()
    if symbology.is_linear:
        rates = frame_error_rates(frame, points)
    return DecodeCandidate(
        raw_text=text,
        symbology=symbology,
        per_module_error_rates=rates,
        polygon=points,
    )


class ZXingEngine:
    """Decoder engine backed by zxing-cpp."""

    name = "zxing"

    _FORMAT_NAMES = {
        Symbology.QR_CODE: "QRCode",
        Symbology.DATA_MATRIX: "DataMatrix",
        Symbology.CODE_128: "Code128",
        Symbology.CODE_39: "Code39",
        Symbology.CODE_93: "Code93",
        Symbology.EAN_13: "EAN13",
        Symbology.EAN_8: "EAN8",
        Symbology.UPC_A: "UPCA",
        Symbology.UPC_E: "UPCE",
        Symbology.ITF: "ITF",
        Symbology.CODABAR: "Codabar",
    }

    def __init__(self) -> None:
        try:
            import zxingcpp  # type: ignore[import-not-found]
        except ImportError as exc:
            raise EngineUnavailable("zxing-cpp is not installed; install it to enable scanning.") from exc

        self._zxing = zxingcpp
        self._formats = {
            symbology: getattr(zxingcpp.BarcodeFormat, format_name)
            for symbology, format_name in self._FORMAT_NAMES.items()
            if hasattr(zxingcpp.BarcodeFormat, format_name)
        }
        self._symbologies = {fmt: symbology for symbology, fmt in self._formats.items()}

    def decode(self, frame: Any, symbologies: frozenset[Symbology]) -> list[DecodeCandidate]:
        wanted = [self._formats[symbology] for symbology in symbologies if symbology in self._formats]
        if frame is None or not wanted:
            return []

        results = self._zxing.read_barcodes(
            frame,
            formats=functools.reduce(operator.or_, wanted),
            try_rotate=True,
            try_downscale=True,
            text_mode=self._zxing.TextMode.HRI,
        )

        candidates: list[DecodeCandidate] = []
        for result in results:
            if hasattr(result, "valid") and not result.valid:
                continue
            if getattr(result, "error", None):
                continue

            symbology = self._symbologies.get(result.format)
            if symbology is None:
                continue

            text = normalize_payload(getattr(result, "text", ""))
            if not text:
                text = normalize_payload(getattr(result, "bytes", b""))
            if not text:
                continue

            position = result.position
            polygon = [
                (position.top_left.x, position.top_left.y),
                (position.top_right.x, position.top_right.y),
                (position.bottom_right.x, position.bottom_right.y),
                (position.bottom_left.x, position.bottom_left.y),
            ]
            candidates.append(build_candidate(frame, text, symbology, polygon))
        return candidates


class PyzbarEngine:
    """Decoder engine backed by zbar through pyzbar."""

    name = "zbar"

    _SYMBOL_NAMES = {
        Symbology.QR_CODE: "QRCODE",
        Symbology.CODE_128: "CODE128",
        Symbology.CODE_39: "CODE39",
        Symbology.CODE_93: "CODE93",
        Symbology.EAN_13: "EAN13",
        Symbology.EAN_8: "EAN8",
        Symbology.UPC_A: "UPCA",
        Symbology.UPC_E: "UPCE",
        Symbology.ITF: "I25",
        Symbology.CODABAR: "CODABAR",
    }

    def __init__(self) -> None:
        try:
            from pyzbar.pyzbar import ZBarSymbol, decode
        except ImportError as exc:
            raise EngineUnavailable("pyzbar (and the zbar library) is required for the zbar engine.") from exc

        self._decode = decode
        self._symbols = {
            symbology: getattr(ZBarSymbol, symbol_name)
            for symbology, symbol_name in self._SYMBOL_NAMES.items()
            if hasattr(ZBarSymbol, symbol_name)
        }
        self._symbologies = {symbol.name: symbology for symbology, symbol in self._symbols.items()}

    def decode(self, frame: Any, symbologies: frozenset[Symbology]) -> list[DecodeCandidate]:
        wanted = [self._symbols[symbology] for symbology in symbologies if symbology in self._symbols]
        if frame is None or not wanted:
            return []

        image = frame
        if getattr(frame, "ndim", 2) == 3:
            image = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)

        candidates: list[DecodeCandidate] = []
        for barcode in self._decode(image, symbols=wanted):
            symbology = self._symbologies.get(barcode.type)
            if symbology is None:
                continue

            text = normalize_payload(barcode.data)
            if not text:
                continue

            rect = barcode.rect
            polygon = [
                (rect.left, rect.top),
                (rect.left + rect.width, rect.top),
                (rect.left + rect.width, rect.top + rect.height),
                (rect.left, rect.top + rect.height),
            ]
            candidates.append(build_candidate(frame, text, symbology, polygon))
        return candidates


ENGINES = {
    ZXingEngine.name: ZXingEngine,
    PyzbarEngine.name: PyzbarEngine,
    "pyzbar": PyzbarEngine,
}


def build_engine(name: str) -> DecodeEngine:
    try:
        factory = ENGINES[name.strip().lower()]
    except KeyError as exc:
        raise EngineUnavailable(f"Unknown scan engine: {name!r}") from exc

    engine = factory()
    logger.info("Using %s decode engine", engine.name)
    return engine


def build_available_engine(preferred: str) -> DecodeEngine:
    """Build ``preferred``, falling back to any other installed engine."""

    preferred = preferred.strip().lower()
    names = [preferred] + [name for name in ENGINES if name != preferred]
    tried: set[type] = set()
    errors: list[str] = []
    for name in names:
        factory = ENGINES.get(name)
        if factory is not None and factory in tried:
            continue
        try:
            return build_engine(name)
        except EngineUnavailable as exc:
            logger.warning("Decode engine %s unavailable: %s", name, exc)
            errors.append(str(exc))
        if factory is not None:
            tried.add(factory)
    raise EngineUnavailable("No decode engine is available. " + " ".join(errors))
