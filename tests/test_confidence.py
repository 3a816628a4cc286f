from __future__ import annotations

import pytest

from locus_inventory.scanner.confidence import DEFAULT_THRESHOLD, accept, mean_error
from locus_inventory.scanner.types import DecodeCandidate, Symbology


def _candidate(rates: tuple[float, ...]) -> DecodeCandidate:
    return DecodeCandidate(raw_text="LOC-0001", symbology=Symbology.CODE_128, per_module_error_rates=rates)


def test_low_error_rates_are_accepted():
    assert accept(_candidate((0.02, 0.03))) is True


def test_high_error_rates_are_rejected():
    assert accept(_candidate((0.2, 0.4))) is False


def test_missing_rates_are_accepted():
    assert accept(_candidate(())) is True


def test_threshold_is_inclusive():
    assert accept(_candidate((0.1, 0.1)), threshold=0.1) is True
    assert accept(_candidate((0.1, 0.12)), threshold=0.1) is False


def test_threshold_can_be_tuned():
    candidate = _candidate((0.2, 0.2))
    assert accept(candidate) is False
    assert accept(candidate, threshold=0.25) is True


def test_mean_error_clamps_negative_rates():
    assert mean_error([-0.5, 0.2]) == pytest.approx(0.1)
    assert mean_error([]) == 0.0


def test_default_threshold():
    assert DEFAULT_THRESHOLD == 0.10
