from __future__ import annotations

import threading
import time

import cv2
import numpy as np
import pytest

from conftest import FakeEngine, FakeFrameSource, FakeTarget, wait_until
from locus_inventory.scanner.decoder import MAX_STUCK_ANALYSES, ContinuousDecoder, SingleShotDecoder, build_decoder
from locus_inventory.scanner.engines import EngineUnavailable, build_available_engine, build_engine, normalize_payload
from locus_inventory.scanner.types import CameraConstraints, DecodeCandidate, ScanConfig, Symbology

SQUARE = ((1, 1), (6, 1), (6, 6), (1, 6))


def _started_source() -> FakeFrameSource:
    source = FakeFrameSource()
    source.start(FakeTarget(), CameraConstraints())
    return source


def test_continuous_decoder_filters_by_allow_list():
    engine = FakeEngine(
        [
            DecodeCandidate("LOC-0001", Symbology.QR_CODE, polygon=SQUARE),
            DecodeCandidate("12345670", Symbology.ITF, polygon=SQUARE),
        ]
    )
    decoder = ContinuousDecoder(engine, tick_interval=0.01)
    source = _started_source()
    received: list[DecodeCandidate] = []

    decoder.activate(source, received.append)
    try:
        assert wait_until(lambda: len(received) >= 2)
    finally:
        decoder.deactivate()

    assert {candidate.symbology for candidate in received} == {Symbology.QR_CODE}
    assert source.locators and source.locators[0] == [SQUARE]


def test_ticks_are_skipped_while_stuck_analyses_pile_up():
    engine = FakeEngine([DecodeCandidate("LOC-0001", Symbology.QR_CODE)])
    engine.gate = threading.Event()
    decoder = ContinuousDecoder(engine, tick_interval=0.01)
    source = _started_source()

    decoder.activate(source, lambda _candidate: None)
    try:
        assert engine.entered.wait(2)
        assert wait_until(lambda: decoder.skipped_ticks >= 3)
        assert wait_until(lambda: engine.calls == MAX_STUCK_ANALYSES + 1)
        assert decoder.abandoned_ticks == MAX_STUCK_ANALYSES
    finally:
        engine.gate.set()
        decoder.deactivate()


class StallingEngine:
    """Hangs on its first frame until released; later frames decode at once."""

    name = "stalling"

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = 0

    def decode(self, frame, symbologies):
        self.calls += 1
        if self.calls == 1:
            self.release.wait(5)
            return [DecodeCandidate("STALE-0001", Symbology.QR_CODE)]
        return [DecodeCandidate("LOC-0006", Symbology.QR_CODE)]


def test_slow_analysis_times_out_and_decoding_continues():
    engine = StallingEngine()
    decoder = ContinuousDecoder(engine, tick_interval=0.02)
    source = _started_source()
    received: list[str] = []

    decoder.activate(source, lambda candidate: received.append(candidate.raw_text))
    try:
        assert wait_until(lambda: "LOC-0006" in received)
        assert engine.calls > 1
        assert decoder.abandoned_ticks >= 1

        engine.release.set()
        time.sleep(0.1)
    finally:
        decoder.deactivate()

    assert "STALE-0001" not in received


def test_hung_analysis_does_not_block_deactivation():
    engine = FakeEngine([DecodeCandidate("LOC-0001", Symbology.QR_CODE)])
    engine.gate = threading.Event()
    decoder = ContinuousDecoder(engine, tick_interval=0.01)
    source = _started_source()
    received: list[DecodeCandidate] = []

    decoder.activate(source, received.append)
    assert engine.entered.wait(2)

    started = time.monotonic()
    decoder.deactivate()
    elapsed = time.monotonic() - started

    engine.gate.set()
    time.sleep(0.05)

    assert elapsed < 1.0
    assert received == []
    assert not decoder.is_active


def test_engine_faults_produce_no_candidates():
    engine = FakeEngine(error=RuntimeError("corrupt frame"))
    decoder = ContinuousDecoder(engine, tick_interval=0.01)
    source = _started_source()
    received: list[DecodeCandidate] = []

    decoder.activate(source, received.append)
    try:
        assert wait_until(lambda: engine.calls >= 3)
    finally:
        decoder.deactivate()

    assert received == []
    assert decoder.analyze(np.zeros((4, 4, 3), dtype=np.uint8)) == []


def test_no_frame_means_no_analysis():
    engine = FakeEngine([DecodeCandidate("LOC-0001", Symbology.QR_CODE)])
    decoder = ContinuousDecoder(engine, tick_interval=0.01)
    source = FakeFrameSource()

    decoder.activate(source, lambda _candidate: None)
    time.sleep(0.05)
    decoder.deactivate()

    assert engine.calls == 0
    assert decoder.ticks == 0


def test_single_shot_capture_delivers_when_active():
    engine = FakeEngine([DecodeCandidate("LOC-0002", Symbology.CODE_128, polygon=SQUARE)])
    decoder = SingleShotDecoder(engine)
    source = _started_source()
    received: list[DecodeCandidate] = []

    decoder.activate(source, received.append)
    found = decoder.capture()

    assert [candidate.raw_text for candidate in found] == ["LOC-0002"]
    assert [candidate.raw_text for candidate in received] == ["LOC-0002"]

    decoder.deactivate()
    decoder.capture(np.zeros((4, 4, 3), dtype=np.uint8))
    assert len(received) == 1


def test_single_shot_respects_symbology_changes():
    engine = FakeEngine([DecodeCandidate("LOC-0003", Symbology.QR_CODE)])
    decoder = SingleShotDecoder(engine)
    decoder.set_symbologies({Symbology.EAN_13})

    assert decoder.capture(np.zeros((4, 4, 3), dtype=np.uint8)) == []


def test_decode_image_reads_still_files(tmp_path):
    engine = FakeEngine([DecodeCandidate("LOC-0004", Symbology.QR_CODE)])
    decoder = SingleShotDecoder(engine)
    image_path = tmp_path / "label.png"
    cv2.imwrite(str(image_path), np.full((16, 16, 3), 255, dtype=np.uint8))

    found = decoder.decode_image(image_path)

    assert [candidate.raw_text for candidate in found] == ["LOC-0004"]
    with pytest.raises(ValueError):
        decoder.decode_image(tmp_path / "missing.png")


def test_normalize_payload():
    assert normalize_payload(b"  LOC-0005\n") == "LOC-0005"
    assert normalize_payload("Café") == "Café"
    assert normalize_payload(None) == ""


def test_unknown_engine_is_unavailable():
    with pytest.raises(EngineUnavailable):
        build_engine("nope")


def test_available_engine_falls_back(monkeypatch):
    from locus_inventory.scanner import engines

    def unavailable() -> None:
        raise EngineUnavailable("not installed")

    monkeypatch.setattr(engines, "ENGINES", {"zxing": unavailable, "zbar": FakeEngine})

    engine = build_available_engine("zxing")

    assert isinstance(engine, FakeEngine)


def test_build_decoder_picks_mode():
    engine = FakeEngine()
    config = ScanConfig(tick_rate=20, symbologies=frozenset({Symbology.EAN_13}))

    single = build_decoder("single_shot", engine, config)
    continuous = build_decoder("continuous", engine, config)

    assert isinstance(single, SingleShotDecoder)
    assert single.symbologies == frozenset({Symbology.EAN_13})
    assert isinstance(continuous, ContinuousDecoder)
    assert continuous.tick_interval == pytest.approx(0.05)
    assert isinstance(build_decoder("burst", engine, config), ContinuousDecoder)
