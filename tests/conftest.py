"""Shared fakes for the scanner tests: camera, preview surface, decoder and engine."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

import cv2
import numpy as np
import pytest

from locus_inventory.scanner.errors import DeviceUnavailable, ScannerError, TargetMissing
from locus_inventory.scanner.types import (
    CameraCapabilities,
    CameraConstraints,
    DecodeCandidate,
    FacingMode,
    ResolutionRange,
    Symbology,
    ZoomRange,
)


def make_capabilities(facing: FacingMode = FacingMode.ENVIRONMENT, zoom: ZoomRange | None = None) -> CameraCapabilities:
    return CameraCapabilities(
        facing_mode=facing,
        resolution_range=ResolutionRange(640, 480, 1280, 720),
        zoom_range=zoom,
    )


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeTarget:
    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self.frames: list[Any] = []
        self.cleared = 0

    def is_ready(self) -> bool:
        return self.ready

    def render(self, frame: Any) -> None:
        self.frames.append(frame)

    def clear(self) -> None:
        self.cleared += 1


class FakeFrameSource:
    """In-memory camera; ``gate`` holds ``start`` until the test releases it."""

    def __init__(
        self,
        *,
        errors: list[ScannerError | None] | None = None,
        reject_exact: bool = False,
        zoom: ZoomRange | None = None,
    ) -> None:
        self.errors = list(errors or [])
        self.reject_exact = reject_exact
        self.zoom = zoom
        self.gate: threading.Event | None = None
        self.entered = threading.Event()
        self.start_calls: list[CameraConstraints] = []
        self.stop_calls = 0
        self.zoom_calls: list[float] = []
        self.locators: list[Any] = []
        self.frame: Any | None = np.zeros((8, 8, 3), dtype=np.uint8)
        self.fault_handler: Callable[[ScannerError], None] | None = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def hold(self) -> threading.Event:
        self.gate = threading.Event()
        return self.gate

    def start(self, target: Any, constraints: CameraConstraints) -> CameraCapabilities:
        self.start_calls.append(constraints)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if target is None or not target.is_ready():
            raise TargetMissing("preview not ready")
        if self.reject_exact and constraints.exact:
            raise DeviceUnavailable("no camera with that exact facing mode")
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        self._active = True
        return make_capabilities(constraints.facing_mode, self.zoom)

    def stop(self) -> None:
        self.stop_calls += 1
        self._active = False

    def apply_zoom(self, value: float) -> None:
        if self._active:
            self.zoom_calls.append(value)

    def latest_frame(self) -> Any | None:
        return self.frame if self._active else None

    def show_locator(self, polygons: Any) -> None:
        self.locators.append(list(polygons))

    def set_fault_handler(self, handler: Callable[[ScannerError], None] | None) -> None:
        self.fault_handler = handler


class FakeDecoder:
    """Decoder stand-in whose candidates are pushed by the test."""

    engine_name = "fake"

    def __init__(self, *, fail_activation: bool = False) -> None:
        self.fail_activation = fail_activation
        self.symbologies: frozenset[Symbology] = frozenset()
        self.activations = 0
        self.deactivations = 0
        self._on_candidate: Callable[[DecodeCandidate], None] | None = None

    @property
    def is_active(self) -> bool:
        return self._on_candidate is not None

    def set_symbologies(self, symbologies: Any) -> None:
        self.symbologies = frozenset(symbologies)

    def activate(self, frame_source: Any, on_candidate: Callable[[DecodeCandidate], None]) -> None:
        if self.fail_activation:
            raise RuntimeError("engine crashed")
        self.activations += 1
        self._on_candidate = on_candidate

    def deactivate(self) -> None:
        self.deactivations += 1
        self._on_candidate = None

    def emit(self, candidate: DecodeCandidate, callback: Callable[[DecodeCandidate], None] | None = None) -> None:
        handler = callback or self._on_candidate
        if handler is not None:
            handler(candidate)

    @property
    def callback(self) -> Callable[[DecodeCandidate], None] | None:
        return self._on_candidate


class FakeEngine:
    name = "fake"

    def __init__(self, results: list[DecodeCandidate] | None = None, *, error: Exception | None = None) -> None:
        self.results = list(results or [])
        self.error = error
        self.calls = 0
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def decode(self, frame: Any, symbologies: frozenset[Symbology]) -> list[DecodeCandidate]:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeCapture:
    def __init__(self, registry: CaptureRegistry, index: int, opened: bool) -> None:
        self._registry = registry
        self.index = index
        self.opened = opened
        self.released = False
        self.props: dict[int, float] = {}

    def isOpened(self) -> bool:  # noqa: N802 - mirrors cv2.VideoCapture
        return self.opened and not self.released

    def read(self) -> tuple[bool, Any]:
        time.sleep(0.002)
        if self.released or self._registry.broken:
            return False, None
        return True, np.full((48, 64, 3), 200, dtype=np.uint8)

    def set(self, prop: int, value: float) -> bool:
        if prop == cv2.CAP_PROP_ZOOM and not self._registry.zoom_supported:
            return False
        self.props[prop] = value
        return True

    def get(self, prop: int) -> float:
        if prop == cv2.CAP_PROP_ZOOM:
            return self.props.get(prop, 1.0) if self._registry.zoom_supported else 0.0
        return self.props.get(prop, 0.0)

    def release(self) -> None:
        self.released = True


class CaptureRegistry:
    """Capture factory that records every handle it hands out."""

    def __init__(self, available: set[int] | None = None, *, zoom_supported: bool = False) -> None:
        self.available = {0} if available is None else set(available)
        self.zoom_supported = zoom_supported
        self.broken = False
        self.captures: list[FakeCapture] = []

    def __call__(self, index: int, backend: int | None) -> FakeCapture:
        capture = FakeCapture(self, index, index in self.available)
        self.captures.append(capture)
        return capture

    @property
    def open_handles(self) -> int:
        return sum(1 for capture in self.captures if not capture.released)

    def opened_indices(self) -> list[int]:
        return [capture.index for capture in self.captures if capture.opened]


@pytest.fixture
def target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
def frame_source() -> FakeFrameSource:
    return FakeFrameSource()


@pytest.fixture
def decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def capture_registry() -> CaptureRegistry:
    return CaptureRegistry()
