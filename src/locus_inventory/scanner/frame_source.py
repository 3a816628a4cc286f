from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import suppress
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Sequence

import cv2
import numpy as np

from locus_inventory.scanner.errors import DeviceUnavailable, PermissionDenied, ScannerError, TargetMissing
from locus_inventory.scanner.types import (
    CameraCapabilities,
    CameraConstraints,
    FacingMode,
    Point,
    RenderTarget,
    ResolutionRange,
    ZoomRange,
)

logger = logging.getLogger(__name__)

PREVIEW_INTERVAL_SECONDS = 0.07
PREVIEW_MAX_WIDTH = 480
LOCATOR_TTL_SECONDS = 0.4
GRAB_RETRY_SECONDS = 0.03
STOP_JOIN_TIMEOUT_SECONDS = 1.5
MAX_FAILED_READS = 60
LOCATOR_COLOR = (0, 255, 0)
DEFAULT_ZOOM_RANGE = ZoomRange(min=1.0, max=5.0, step=0.5)

CaptureFactory = Callable[[int, Optional[int]], Any]
FaultHandler = Callable[[ScannerError], None]


class FrameSource(Protocol):
    @property
    def is_active(self) -> bool: ...

    def start(self, target: RenderTarget | None, constraints: CameraConstraints) -> CameraCapabilities: ...

    def stop(self) -> None: ...

    def apply_zoom(self, value: float) -> None: ...

    def latest_frame(self) -> Any | None: ...

    def show_locator(self, polygons: Sequence[Sequence[Point]]) -> None: ...


def open_with_fallback(
    source: FrameSource,
    target: RenderTarget | None,
    constraints: CameraConstraints,
) -> CameraCapabilities:
    """Start ``source``, relaxing an exact facing-mode request once on failure."""

    try:
        return source.start(target, constraints)
    except DeviceUnavailable:
        if not constraints.exact:
            raise
        logger.info(
            "No camera matches exact facing mode %r; retrying with relaxed constraints",
            constraints.facing_mode.value,
        )
    return source.start(target, constraints.relaxed())


def _default_capture_factory(index: int, backend: Optional[int]) -> Any:
    if backend is None:
        return cv2.VideoCapture(index)
    return cv2.VideoCapture(index, backend)


class OpenCVFrameSource:
    """Camera stream read through OpenCV and pushed to a preview surface.

    A background thread keeps the most recent frame for the decoder and
    renders a throttled, downscaled copy onto the target. Only one capture
    handle is ever held; starting again releases the previous one.
    """

    def __init__(
        self,
        *,
        environment_index: int = 0,
        user_index: int = 1,
        max_cameras: int = 3,
        zoom_range: ZoomRange | None = DEFAULT_ZOOM_RANGE,
        capture_factory: CaptureFactory | None = None,
        device_path_template: str = "/dev/video{index}",
    ) -> None:
        self._indices = {
            FacingMode.ENVIRONMENT: environment_index,
            FacingMode.USER: user_index,
        }
        self._max_cameras = max(1, max_cameras)
        self._zoom_range = zoom_range
        self._capture_factory = capture_factory or _default_capture_factory
        self._device_path_template = device_path_template

        self._lock = threading.Lock()
        self._frame_lock = threading.Lock()
        self._capture: Any | None = None
        self._target: RenderTarget | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._capabilities: CameraCapabilities | None = None
        self._latest: Any | None = None
        self._locator: tuple[float, tuple[tuple[Point, ...], ...]] | None = None
        self._fault_handler: FaultHandler | None = None

    @property
    def is_active(self) -> bool:
        return self._capture is not None

    @property
    def capabilities(self) -> CameraCapabilities | None:
        return self._capabilities

    def start(self, target: RenderTarget | None, constraints: CameraConstraints) -> CameraCapabilities:
        if target is None or not target.is_ready():
            raise TargetMissing("Camera preview surface is not ready.")

        self.stop()

        permission_denied = False
        for index in self._candidate_indices(constraints):
            if self._is_permission_denied(index):
                logger.warning("Camera %s exists but access was denied", index)
                permission_denied = True
                continue

            capture = self._open_capture(index)
            if capture is None:
                continue

            capabilities = self._negotiate(capture, index, constraints)
            self._activate(capture, target, capabilities)
            logger.info(
                "Camera %s opened (%s, %sx%s, zoom=%s)",
                index,
                capabilities.facing_mode.value,
                capabilities.resolution_range.min_width,
                capabilities.resolution_range.min_height,
                capabilities.supports_zoom,
            )
            return capabilities

        if permission_denied:
            raise PermissionDenied("Camera access was denied. Check the system privacy settings.")
        raise DeviceUnavailable(
            "Unable to access the camera. Check that it is connected and not used by another app."
        )

    def stop(self) -> None:
        with self._lock:
            capture, thread, target = self._capture, self._thread, self._target
            self._capture = None
            self._thread = None
            self._target = None
            self._capabilities = None
            self._stop_event.set()

        with self._frame_lock:
            self._latest = None
            self._locator = None

        if capture is None:
            return

        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT_SECONDS)

        with suppress(Exception):
            capture.release()
        if target is not None:
            with suppress(Exception):
                target.clear()
        logger.debug("Camera released")

    def apply_zoom(self, value: float) -> None:
        with self._lock:
            capture = self._capture
            capabilities = self._capabilities
        if capture is None or capabilities is None or capabilities.zoom_range is None:
            return

        clamped = capabilities.zoom_range.clamp(float(value))
        try:
            capture.set(cv2.CAP_PROP_ZOOM, clamped)
        except cv2.error:
            logger.debug("Zoom %.2f rejected by camera", clamped)

    def latest_frame(self) -> Any | None:
        with self._frame_lock:
            return self._latest

    def show_locator(self, polygons: Sequence[Sequence[Point]]) -> None:
        shapes = tuple(tuple(polygon) for polygon in polygons if polygon)
        with self._frame_lock:
            self._locator = (time.monotonic(), shapes) if shapes else None

    def set_fault_handler(self, handler: FaultHandler | None) -> None:
        """Register a callback for a stream that stops delivering frames."""

        self._fault_handler = handler

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _candidate_indices(self, constraints: CameraConstraints) -> list[int]:
        preferred = self._indices[constraints.facing_mode]
        if constraints.exact:
            return [preferred]

        indices = [preferred]
        for index in range(self._max_cameras):
            if index not in indices:
                indices.append(index)
        return indices

    def _is_permission_denied(self, index: int) -> bool:
        device_path = Path(self._device_path_template.format(index=index))
        return device_path.exists() and not os.access(device_path, os.R_OK | os.W_OK)

    def _open_capture(self, index: int) -> Any | None:
        backend_preferences = [getattr(cv2, "CAP_DSHOW", None), getattr(cv2, "CAP_ANY", None)]

        for backend in backend_preferences:
            capture = self._capture_factory(index, backend)
            if capture.isOpened():
                return capture
            capture.release()

        return None

    def _facing_for(self, index: int, requested: FacingMode) -> FacingMode:
        if self._indices[requested] == index:
            return requested
        for facing, facing_index in self._indices.items():
            if facing_index == index:
                return facing
        return requested

    def _negotiate(self, capture: Any, index: int, constraints: CameraConstraints) -> CameraCapabilities:
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or constraints.width)
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or constraints.height)

        return CameraCapabilities(
            facing_mode=self._facing_for(index, constraints.facing_mode),
            resolution_range=ResolutionRange(
                min_width=width,
                min_height=height,
                max_width=max(width, constraints.width),
                max_height=max(height, constraints.height),
            ),
            zoom_range=self._read_zoom_range(capture),
            device_index=index,
        )

    def _read_zoom_range(self, capture: Any) -> ZoomRange | None:
        if self._zoom_range is None:
            return None

        current = capture.get(cv2.CAP_PROP_ZOOM)
        if current is None or current <= 0:
            return None
        try:
            supported = bool(capture.set(cv2.CAP_PROP_ZOOM, current))
        except cv2.error:
            supported = False
        if not supported:
            return None

        return ZoomRange(
            min=min(self._zoom_range.min, float(current)),
            max=max(self._zoom_range.max, float(current)),
            step=self._zoom_range.step,
        )

    def _activate(self, capture: Any, target: RenderTarget, capabilities: CameraCapabilities) -> None:
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._grab_loop,
            args=(capture, target, stop_event),
            name=f"camera-{capabilities.device_index}",
            daemon=True,
        )
        with self._lock:
            self._capture = capture
            self._target = target
            self._capabilities = capabilities
            self._stop_event = stop_event
            self._thread = thread
        thread.start()

    def _grab_loop(self, capture: Any, target: RenderTarget, stop_event: threading.Event) -> None:
        last_preview = 0.0
        failed_reads = 0

        while not stop_event.is_set():
            try:
                ok, frame = capture.read()
            except cv2.error:
                ok, frame = False, None
            if not ok or frame is None:
                failed_reads += 1
                if failed_reads == MAX_FAILED_READS and self._fault_handler is not None:
                    logger.warning("Camera stopped delivering frames")
                    self._fault_handler(DeviceUnavailable("The camera stopped delivering frames."))
                stop_event.wait(GRAB_RETRY_SECONDS)
                continue
            failed_reads = 0

            with self._frame_lock:
                if stop_event.is_set():
                    break
                self._latest = frame
                locator = self._locator

            now = time.monotonic()
            if (now - last_preview) >= PREVIEW_INTERVAL_SECONDS:
                self._render_preview(target, frame, locator, now)
                last_preview = now

    def _render_preview(
        self,
        target: RenderTarget,
        frame: Any,
        locator: tuple[float, tuple[tuple[Point, ...], ...]] | None,
        now: float,
    ) -> None:
        preview = frame.copy()
        if locator is not None and (now - locator[0]) <= LOCATOR_TTL_SECONDS:
            draw_locator(preview, locator[1])

        if PREVIEW_MAX_WIDTH and preview.shape[1] > PREVIEW_MAX_WIDTH:
            scale = PREVIEW_MAX_WIDTH / float(preview.shape[1])
            height = int(preview.shape[0] * scale)
            preview = cv2.resize(preview, (PREVIEW_MAX_WIDTH, height))

        try:
            target.render(preview)
        except Exception:  # pragma: no cover - target torn down by the UI
            logger.debug("Preview target rejected a frame", exc_info=True)


def draw_locator(frame: Any, polygons: Sequence[Sequence[Point]]) -> None:
    for polygon in polygons:
        if len(polygon) < 2:
            continue
        points = np.array(polygon, dtype=np.int32).reshape((-1, 1, 2))
        cv2.polylines(frame, [points], isClosed=True, color=LOCATOR_COLOR, thickness=3)
