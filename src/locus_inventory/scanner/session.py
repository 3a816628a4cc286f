from __future__ import annotations

import functools
import logging
import threading
import uuid
from pathlib import Path
from typing import Callable, Iterable, Optional

from locus_inventory.scanner import confidence
from locus_inventory.scanner.decoder import Decoder
from locus_inventory.scanner.errors import (
    DeviceUnavailable,
    ScannerError,
    SessionBusyError,
    SessionClosedError,
)
from locus_inventory.scanner.feedback import FeedbackEmitter
from locus_inventory.scanner.frame_source import FrameSource, open_with_fallback
from locus_inventory.scanner.manual import normalize_manual_code
from locus_inventory.scanner.types import (
    CameraCapabilities,
    CameraConstraints,
    DecodeCandidate,
    ErrorKind,
    FacingMode,
    RenderTarget,
    ScanConfig,
    ScanState,
    Symbology,
)

logger = logging.getLogger(__name__)

AcceptPredicate = Callable[[DecodeCandidate, float], bool]


class ScanSession:
    """State machine driving one scan from camera start to a single accepted code.

    ``IDLE -> STARTING -> SCANNING -> ACCEPTED | STOPPED | FAILED``

    Transitions are applied under one lock and each state is left at most
    once, so concurrent candidate deliveries produce a single winner. Camera
    and decoder teardown runs exactly once per start attempt, whichever way
    the attempt ends. Callbacks fire on worker threads.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        decoder: Decoder,
        *,
        config: ScanConfig | None = None,
        feedback: FeedbackEmitter | None = None,
        accept: AcceptPredicate = confidence.accept,
        on_complete: Optional[Callable[[str], None]] = None,
        on_failed: Optional[Callable[[ErrorKind], None]] = None,
        on_capabilities: Optional[Callable[[CameraCapabilities], None]] = None,
    ) -> None:
        self._frame_source = frame_source
        self._decoder = decoder
        self._config = config or ScanConfig()
        self._feedback = feedback or FeedbackEmitter(beep=self._config.beep)
        self._accept = accept
        self.on_complete = on_complete
        self.on_failed = on_failed
        self.on_capabilities = on_capabilities

        self._lock = threading.Lock()
        self._session_id = uuid.uuid4().hex
        self._state = ScanState.IDLE
        self._accepted_code: str | None = None
        self._last_error: ErrorKind | None = None
        self._attempt_count = 0
        self._rejected_count = 0
        self._capabilities: CameraCapabilities | None = None

        self._attempt = 0
        self._torn_down_attempt = 0
        self._start_pending = False
        self._start_thread: threading.Thread | None = None
        self._target: RenderTarget | None = None
        self._facing = self._config.facing_mode
        self._symbologies = self._config.symbologies

        set_fault_handler = getattr(frame_source, "set_fault_handler", None)
        if set_fault_handler is not None:
            set_fault_handler(self._on_source_fault)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def accepted_code(self) -> str | None:
        return self._accepted_code

    @property
    def last_error(self) -> ErrorKind | None:
        return self._last_error

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def rejected_count(self) -> int:
        return self._rejected_count

    @property
    def capabilities(self) -> CameraCapabilities | None:
        return self._capabilities

    @property
    def is_start_pending(self) -> bool:
        return self._start_pending

    def start(
        self,
        target: RenderTarget | None,
        preferred_facing: FacingMode | str | None = None,
        allowed_symbologies: Iterable[Symbology | str] | None = None,
    ) -> None:
        with self._lock:
            if self._state is not ScanState.IDLE:
                raise SessionClosedError(f"Session {self._session_id} is already {self._state.value}.")
            self._target = target
            if preferred_facing is not None:
                self._facing = FacingMode.parse(preferred_facing)
            if allowed_symbologies is not None:
                self._symbologies = Symbology.parse_many(allowed_symbologies)

        self._begin_start(ScanState.IDLE)

    def retry(self) -> None:
        self._begin_start(ScanState.FAILED)

    def stop(self) -> None:
        with self._lock:
            if self._state not in (ScanState.STARTING, ScanState.SCANNING):
                return
            self._state = ScanState.STOPPED
            attempt = self._attempt
            pending = self._start_pending

        logger.info("Scan session %s cancelled", self._session_id)
        # A pending start releases the camera itself once it resolves.
        if not pending:
            self._teardown(attempt)

    def submit_manual(self, text: str | None) -> str:
        code = normalize_manual_code(text)

        with self._lock:
            if self._state in (ScanState.ACCEPTED, ScanState.STOPPED):
                raise SessionClosedError(f"Session {self._session_id} is already {self._state.value}.")
            attempt = self._attempt
            release = self._state in (ScanState.STARTING, ScanState.SCANNING) and not self._start_pending
            self._state = ScanState.ACCEPTED
            self._accepted_code = code

        logger.info("Scan session %s accepted a manually entered code", self._session_id)
        self._complete(attempt, code, release=release)
        return code

    def reset(self) -> None:
        """Discard the session (UI closed) and come back to ``IDLE`` with a new id."""

        with self._lock:
            attempt = self._attempt
            pending = self._start_pending
            self._attempt += 1
            self._session_id = uuid.uuid4().hex
            self._state = ScanState.IDLE
            self._accepted_code = None
            self._last_error = None
            self._attempt_count = 0
            self._rejected_count = 0
            self._capabilities = None

        if not pending:
            self._teardown(attempt)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for a pending camera start; ``True`` once nothing is pending."""

        thread = self._start_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return not self._start_pending

    def cancel(self) -> None:
        """Stop scanning and return to ``IDLE`` so the code can still be typed."""

        self.stop()
        self.reset()

    def close(self, timeout: float | None = None) -> bool:
        """Release everything before shutdown.

        Returns ``False`` when the camera start is still pending after
        ``timeout``; that start releases the camera itself when it resolves,
        so the frame source is not stopped underneath it.
        """

        self.reset()
        if not self.join(timeout):
            logger.warning("Camera start still pending at shutdown; it will release the camera itself")
            return False
        self._frame_source.stop()
        return True

    def apply_zoom(self, value: float) -> None:
        if self._state is ScanState.SCANNING:
            self._frame_source.apply_zoom(value)

    def capture(self) -> bool:
        """Run one analysis on demand for decoders that work frame by frame."""

        capture = getattr(self._decoder, "capture", None)
        if self._state is not ScanState.SCANNING or capture is None:
            return False
        capture()
        return True

    def decode_image(self, path: Path | str) -> bool:
        """Feed a still image through the decoder as if it came from the camera."""

        decode_image = getattr(self._decoder, "decode_image", None)
        if self._state is not ScanState.SCANNING or decode_image is None:
            return False
        decode_image(path)
        return True

    @property
    def supports_capture(self) -> bool:
        return callable(getattr(self._decoder, "capture", None))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _begin_start(self, expected: ScanState) -> None:
        with self._lock:
            if self._state is not expected:
                raise SessionClosedError(
                    f"Session {self._session_id} cannot start from {self._state.value}."
                )
            if self._start_pending:
                raise SessionBusyError("The camera is still being released. Try again in a moment.")

            self._attempt += 1
            attempt = self._attempt
            self._state = ScanState.STARTING
            self._last_error = None
            self._start_pending = True
            constraints = CameraConstraints(facing_mode=self._facing, exact=self._config.exact_facing)
            thread = threading.Thread(
                target=self._resolve_start,
                args=(attempt, self._target, constraints),
                name=f"scan-start-{self._session_id[:8]}",
                daemon=True,
            )
            self._start_thread = thread

        self._decoder.set_symbologies(self._symbologies)
        logger.info(
            "Scan session %s starting (facing=%s, attempt=%s)",
            self._session_id,
            constraints.facing_mode.value,
            attempt,
        )
        thread.start()

    def _resolve_start(
        self,
        attempt: int,
        target: RenderTarget | None,
        constraints: CameraConstraints,
    ) -> None:
        try:
            capabilities = open_with_fallback(self._frame_source, target, constraints)
        except ScannerError as exc:
            self._handle_start_failure(attempt, exc)
            return
        except Exception as exc:
            logger.exception("Camera start raised unexpectedly")
            self._handle_start_failure(attempt, DeviceUnavailable(str(exc)))
            return

        with self._lock:
            self._start_pending = False
            cancelled = attempt != self._attempt or self._state is not ScanState.STARTING
            if not cancelled:
                self._state = ScanState.SCANNING
                self._capabilities = capabilities

        if cancelled:
            logger.info("Camera start finished after cancellation; releasing it")
            self._teardown(attempt)
            return

        try:
            self._decoder.activate(self._frame_source, functools.partial(self._on_candidate, attempt))
        except Exception as exc:
            logger.exception("Decoder activation failed")
            self._fail(attempt, DeviceUnavailable(str(exc)))
            return

        with self._lock:
            still_scanning = attempt == self._attempt and self._state is ScanState.SCANNING
        if not still_scanning:
            # Stopped between the transition and activation; teardown already ran.
            self._decoder.deactivate()
            return

        logger.info("Scan session %s scanning with %s engine", self._session_id, self._decoder.engine_name)
        if self.on_capabilities is not None:
            try:
                self.on_capabilities(capabilities)
            except Exception:
                logger.exception("Capabilities callback raised")

    def _handle_start_failure(self, attempt: int, error: ScannerError) -> None:
        with self._lock:
            self._start_pending = False
            cancelled = attempt != self._attempt or self._state is not ScanState.STARTING

        if cancelled:
            logger.info("Camera start failed after cancellation (%s)", error.kind.value)
            self._teardown(attempt)
            return

        self._fail(attempt, error)

    def _on_candidate(self, attempt: int, candidate: DecodeCandidate) -> None:
        code = candidate.raw_text.strip()
        accepted = bool(code) and self._accept(candidate, self._config.confidence_threshold)

        with self._lock:
            if attempt != self._attempt or self._state is not ScanState.SCANNING:
                return
            if not accepted:
                self._rejected_count += 1
                return
            self._attempt_count += 1
            self._state = ScanState.ACCEPTED
            self._accepted_code = code

        logger.info(
            "Scan session %s accepted %s code after %s rejected reads",
            self._session_id,
            candidate.symbology.value,
            self._rejected_count,
        )
        self._complete(attempt, code, release=True)

    def _on_source_fault(self, error: ScannerError) -> None:
        with self._lock:
            attempt = self._attempt
        self._fail(attempt, error)

    def _complete(self, attempt: int, code: str, *, release: bool) -> None:
        if release:
            self._teardown(attempt)
        self._feedback.on_accept(code)
        if self.on_complete is not None:
            try:
                self.on_complete(code)
            except Exception:
                logger.exception("Scan completion callback raised")

    def _fail(self, attempt: int, error: ScannerError) -> None:
        with self._lock:
            if attempt != self._attempt or self._state.is_terminal or self._state is ScanState.IDLE:
                return
            self._state = ScanState.FAILED
            self._last_error = error.kind

        if error.kind is ErrorKind.TARGET_MISSING:
            logger.error("Scanner started without a ready preview surface: %s", error)
        else:
            logger.warning("Scan session %s failed: %s", self._session_id, error)

        self._teardown(attempt)
        try:
            self._feedback.on_fail(error.kind)
        except Exception:
            logger.exception("Failure feedback raised")
        if self.on_failed is not None:
            try:
                self.on_failed(error.kind)
            except Exception:
                logger.exception("Scan failure callback raised")

    def _teardown(self, attempt: int) -> None:
        with self._lock:
            if attempt <= self._torn_down_attempt:
                return
            self._torn_down_attempt = attempt

        try:
            self._decoder.deactivate()
        except Exception:
            logger.exception("Decoder teardown raised")
        try:
            self._frame_source.stop()
        except Exception:
            logger.exception("Camera teardown raised")
