from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable

import cv2

from locus_inventory.scanner.engines import DecodeEngine
from locus_inventory.scanner.frame_source import FrameSource
from locus_inventory.scanner.types import DEFAULT_SYMBOLOGIES, DecodeCandidate, ScanConfig, Symbology

logger = logging.getLogger(__name__)

CandidateCallback = Callable[[DecodeCandidate], None]

DEFAULT_TICK_INTERVAL_SECONDS = 1.0 / 12
MAX_STUCK_ANALYSES = 2


class Decoder(ABC):
    """Turns frames from a :class:`FrameSource` into decode candidates.

    Candidates outside the configured symbology allow-list are never
    delivered. A frame that yields nothing, or whose analysis raises, is a
    routine miss and is not reported.
    """

    def __init__(
        self,
        engine: DecodeEngine,
        *,
        symbologies: Iterable[Symbology] = DEFAULT_SYMBOLOGIES,
        draw_locator: bool = True,
    ) -> None:
        self._engine = engine
        self._symbologies = frozenset(symbologies)
        self._draw_locator = draw_locator
        self._lock = threading.Lock()
        self._generation = 0
        self._frame_source: FrameSource | None = None
        self._on_candidate: CandidateCallback | None = None

    @property
    def engine_name(self) -> str:
        return self._engine.name

    @property
    def symbologies(self) -> frozenset[Symbology]:
        return self._symbologies

    @property
    def is_active(self) -> bool:
        return self._on_candidate is not None

    def set_symbologies(self, symbologies: Iterable[Symbology]) -> None:
        self._symbologies = frozenset(symbologies)

    @abstractmethod
    def activate(self, frame_source: FrameSource, on_candidate: CandidateCallback) -> None: ...

    @abstractmethod
    def deactivate(self) -> None: ...

    def analyze(self, frame: Any) -> list[DecodeCandidate]:
        if frame is None:
            return []

        allowed = self._symbologies
        try:
            candidates = self._engine.decode(frame, allowed)
        except Exception:
            logger.debug("Decode attempt failed", exc_info=True)
            return []
        return [candidate for candidate in candidates if candidate.symbology in allowed]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _bind(self, frame_source: FrameSource, on_candidate: CandidateCallback) -> int:
        with self._lock:
            self._generation += 1
            self._frame_source = frame_source
            self._on_candidate = on_candidate
            return self._generation

    def _unbind(self) -> None:
        with self._lock:
            self._generation += 1
            self._frame_source = None
            self._on_candidate = None

    def _is_current(self, generation: int) -> bool:
        return self._generation == generation

    def _deliver(
        self,
        generation: int,
        frame_source: FrameSource,
        candidates: list[DecodeCandidate],
        on_candidate: CandidateCallback,
    ) -> None:
        if not candidates or not self._is_current(generation):
            return

        if self._draw_locator:
            frame_source.show_locator([candidate.polygon for candidate in candidates])

        for candidate in candidates:
            if not self._is_current(generation):
                return
            try:
                on_candidate(candidate)
            except Exception:
                logger.exception("Candidate handler raised")


class ContinuousDecoder(Decoder):
    """Samples the live stream on a fixed cadence.

    Each analysis gets one tick interval. One that runs longer is abandoned:
    its result is ignored and the next tick goes to a fresh worker. When too
    many abandoned analyses are still stuck, ticks are skipped rather than
    queued, so slow frames never build a backlog.
    """

    def __init__(
        self,
        engine: DecodeEngine,
        *,
        tick_interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        symbologies: Iterable[Symbology] = DEFAULT_SYMBOLOGIES,
        draw_locator: bool = True,
    ) -> None:
        super().__init__(engine, symbologies=symbologies, draw_locator=draw_locator)
        self._tick_interval = max(0.001, float(tick_interval))
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._stop_event = threading.Event()
        self.ticks = 0
        self.skipped_ticks = 0
        self.abandoned_ticks = 0

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def activate(self, frame_source: FrameSource, on_candidate: CandidateCallback) -> None:
        self.deactivate()

        generation = self._bind(frame_source, on_candidate)
        stop_event = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="decode")
        thread = threading.Thread(
            target=self._schedule,
            args=(generation, frame_source, on_candidate, stop_event, executor),
            name="decode-scheduler",
            daemon=True,
        )
        with self._lock:
            self._stop_event = stop_event
            self._executor = executor
            self._thread = thread
        thread.start()
        logger.debug("Continuous decoder active (%.1f ticks/s)", 1.0 / self._tick_interval)

    def deactivate(self) -> None:
        with self._lock:
            thread, executor = self._thread, self._executor
            self._thread = None
            self._executor = None
            self._stop_event.set()
        self._unbind()

        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self._tick_interval * 2)

    def _schedule(
        self,
        generation: int,
        frame_source: FrameSource,
        on_candidate: CandidateCallback,
        stop_event: threading.Event,
        executor: ThreadPoolExecutor,
    ) -> None:
        in_flight: Future | None = None
        submitted_at = 0.0
        stuck: list[Future] = []
        next_tick = time.monotonic()

        while not stop_event.is_set():
            now = time.monotonic()
            if in_flight is not None and not in_flight.done() and now - submitted_at >= self._tick_interval:
                stuck = [future for future in stuck if not future.done()]
                if len(stuck) < MAX_STUCK_ANALYSES:
                    renewed = self._abandon_worker(generation, stop_event, executor)
                    if renewed is None:
                        break
                    generation, executor = renewed
                    stuck.append(in_flight)
                    in_flight = None

            if in_flight is not None and not in_flight.done():
                self.skipped_ticks += 1
            else:
                frame = frame_source.latest_frame()
                if frame is not None:
                    self.ticks += 1
                    try:
                        in_flight = executor.submit(
                            self._run_tick, generation, frame_source, frame, on_candidate
                        )
                    except RuntimeError:
                        break
                    submitted_at = now

            next_tick += self._tick_interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                next_tick = time.monotonic()
                delay = 0.0
            stop_event.wait(delay)

    def _abandon_worker(
        self,
        generation: int,
        stop_event: threading.Event,
        executor: ThreadPoolExecutor,
    ) -> tuple[int, ThreadPoolExecutor] | None:
        # The stuck thread cannot be interrupted; a new generation makes its
        # late result undeliverable and a new executor takes the next tick.
        with self._lock:
            if stop_event.is_set() or self._generation != generation:
                return None
            self._generation += 1
            replacement = ThreadPoolExecutor(max_workers=1, thread_name_prefix="decode")
            self._executor = replacement
            renewed = self._generation

        executor.shutdown(wait=False, cancel_futures=True)
        self.abandoned_ticks += 1
        logger.debug("Decode analysis exceeded %.3fs; abandoning it", self._tick_interval)
        return renewed, replacement

    def _run_tick(
        self,
        generation: int,
        frame_source: FrameSource,
        frame: Any,
        on_candidate: CandidateCallback,
    ) -> None:
        if not self._is_current(generation):
            return
        candidates = self.analyze(frame)
        self._deliver(generation, frame_source, candidates, on_candidate)


class SingleShotDecoder(Decoder):
    """Analyses one captured frame per request instead of a running stream."""

    def __init__(
        self,
        engine: DecodeEngine,
        *,
        symbologies: Iterable[Symbology] = DEFAULT_SYMBOLOGIES,
        draw_locator: bool = True,
    ) -> None:
        super().__init__(engine, symbologies=symbologies, draw_locator=draw_locator)
        self._busy = threading.Lock()

    def activate(self, frame_source: FrameSource, on_candidate: CandidateCallback) -> None:
        self._bind(frame_source, on_candidate)

    def deactivate(self) -> None:
        self._unbind()

    def capture(self, frame: Any | None = None) -> list[DecodeCandidate]:
        """Decode ``frame`` (or the current camera frame) once.

        Returns the candidates found; when the decoder is active they are
        also delivered to the bound callback. A capture requested while
        another is still being analysed is dropped.
        """

        if not self._busy.acquire(blocking=False):
            return []
        try:
            with self._lock:
                generation = self._generation
                frame_source = self._frame_source
                on_candidate = self._on_candidate

            if frame is None and frame_source is not None:
                frame = frame_source.latest_frame()

            candidates = self.analyze(frame)
            if frame_source is not None and on_candidate is not None:
                self._deliver(generation, frame_source, candidates, on_candidate)
            return candidates
        finally:
            self._busy.release()

    def decode_image(self, path: Path | str) -> list[DecodeCandidate]:
        image = cv2.imread(str(path))
        if image is None:
            raise ValueError(f"Unable to read image: {path}")
        return self.capture(image)


def build_decoder(mode: str, engine: DecodeEngine, config: ScanConfig) -> Decoder:
    """Create the decoder for ``mode``: ``continuous`` or ``single_shot``."""

    normalized = (mode or "continuous").strip().lower().replace("-", "_")
    if normalized == "single_shot":
        return SingleShotDecoder(engine, symbologies=config.symbologies, draw_locator=config.draw_locator)
    if normalized != "continuous":
        logger.warning("Unknown scan mode %r; using continuous scanning", mode)
    return ContinuousDecoder(
        engine,
        tick_interval=config.tick_interval,
        symbologies=config.symbologies,
        draw_locator=config.draw_locator,
    )
