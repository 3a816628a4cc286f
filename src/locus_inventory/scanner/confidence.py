from __future__ import annotations

from typing import Sequence

from locus_inventory.scanner.types import DecodeCandidate

DEFAULT_THRESHOLD = 0.10


def mean_error(rates: Sequence[float]) -> float:
    """Average per-module error, with negative readings counted as zero."""

    if not rates:
        return 0.0
    return sum(max(0.0, float(rate)) for rate in rates) / len(rates)


def accept(candidate: DecodeCandidate, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Decide whether a decoded candidate is trustworthy enough to keep.

    Candidates without per-module rates are accepted as-is: engines that do
    not report them (2D symbols) validate with their own checksums.
    """

    rates = candidate.per_module_error_rates
    if not rates:
        return True
    return mean_error(rates) <= threshold
