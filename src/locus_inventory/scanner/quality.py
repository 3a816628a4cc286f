from __future__ import annotations

from typing import Any, Sequence

import cv2
import numpy as np

from locus_inventory.scanner.confidence import mean_error

MIN_RUNS = 6
MIN_SPAN_PX = 16
SCANLINE_OFFSETS = (0.35, 0.5, 0.65)


def scanline_runs(row: Any) -> list[int]:
    """Run lengths of alternating bars and spaces along one pixel row.

    The row is binarised with Otsu's threshold and the light quiet zone on
    both ends is dropped, so the first and last runs are always bars.
    """

    values = np.asarray(row, dtype=np.uint8).ravel()
    if values.size < 2:
        return []

    _, binary = cv2.threshold(values.reshape(1, -1), 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    dark = binary.ravel() == 0
    dark_indices = np.flatnonzero(dark)
    if dark_indices.size == 0:
        return []

    dark = dark[dark_indices[0] : dark_indices[-1] + 1]
    changes = np.flatnonzero(np.diff(dark.astype(np.int8))) + 1
    bounds = np.concatenate(([0], changes, [dark.size]))
    return [int(length) for length in np.diff(bounds)]


def _estimate_module_width(runs: Sequence[int]) -> float:
    ordered = sorted(runs)
    estimate = float(ordered[len(ordered) // 10])
    # Refine against the whole symbol width so one thick bar cannot skew it.
    for _ in range(2):
        units = sum(max(1, round(run / estimate)) for run in runs)
        estimate = sum(runs) / units
    return estimate


def module_error_rates(runs: Sequence[int]) -> tuple[float, ...]:
    """Per-run deviation from a whole number of modules, in ``[0, 1]``.

    A crisp print gives runs that are exact multiples of the narrow module
    width; motion blur and partial occlusion push them in between.
    """

    cleaned = [int(run) for run in runs if run > 0]
    if len(cleaned) < MIN_RUNS:
        return ()

    module = _estimate_module_width(cleaned)
    if module <= 0:
        return ()

    rates: list[float] = []
    for run in cleaned:
        ratio = run / module
        nearest = max(1, round(ratio))
        rates.append(min(1.0, 2.0 * abs(ratio - nearest)))
    return tuple(rates)


def _to_gray(frame: Any) -> np.ndarray:
    image = np.asarray(frame)
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def frame_error_rates(frame: Any, polygon: Sequence[tuple[int, int]]) -> tuple[float, ...]:
    """Sample scanlines across a located linear symbol and rate its modules."""

    if frame is None or not polygon:
        return ()

    gray = _to_gray(frame)
    height, width = gray.shape[:2]
    xs = [int(point[0]) for point in polygon]
    ys = [int(point[1]) for point in polygon]
    # Linear locators are often a bare line; widen them into a thin band.
    band = max(2, (max(xs) - min(xs) + max(ys) - min(ys)) // 20)
    if max(ys) - min(ys) < 2:
        ys = [min(ys) - band, max(ys) + band]
    if max(xs) - min(xs) < 2:
        xs = [min(xs) - band, max(xs) + band]

    left, right = max(0, min(xs)), min(width, max(xs) + 1)
    top, bottom = max(0, min(ys)), min(height, max(ys) + 1)
    if right - left < 2 or bottom - top < 2:
        return ()

    region = gray[top:bottom, left:right]
    # Scan along the longer side: bars run across it.
    if region.shape[0] > region.shape[1]:
        region = region.T
    if region.shape[1] < MIN_SPAN_PX:
        return ()

    measured: list[tuple[float, tuple[float, ...]]] = []
    for offset in SCANLINE_OFFSETS:
        row_index = min(region.shape[0] - 1, int(region.shape[0] * offset))
        rates = module_error_rates(scanline_runs(region[row_index]))
        if rates:
            measured.append((mean_error(rates), rates))

    if not measured:
        return ()
    measured.sort(key=lambda item: item[0])
    return measured[len(measured) // 2][1]
