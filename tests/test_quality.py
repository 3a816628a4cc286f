from __future__ import annotations

import numpy as np
import pytest

from locus_inventory.scanner.confidence import accept, mean_error
from locus_inventory.scanner.quality import frame_error_rates, module_error_rates, scanline_runs
from locus_inventory.scanner.types import DecodeCandidate, Symbology

MODULE_PX = 4
# Bars on even indices; an odd length keeps the symbol ending on a bar.
PATTERN = (2, 1, 1, 3, 2, 1, 1, 2, 1, 1, 3)


def _barcode_image(quiet: int = 20, height: int = 60) -> tuple[np.ndarray, int]:
    total = sum(PATTERN) * MODULE_PX
    image = np.full((height, quiet * 2 + total), 255, dtype=np.uint8)
    x = quiet
    for index, modules in enumerate(PATTERN):
        width = modules * MODULE_PX
        if index % 2 == 0:
            image[:, x : x + width] = 0
        x += width
    return image, total


def test_scanline_runs_trims_quiet_zone():
    row = [255] * 5 + [0] * 2 + [255] * 4 + [0] * 6 + [255] * 5
    assert scanline_runs(row) == [2, 4, 6]


def test_scanline_runs_needs_pixels():
    assert scanline_runs([0]) == []


def test_clean_runs_have_no_error():
    assert module_error_rates([2, 4, 2, 6, 4, 2, 2, 8]) == (0.0,) * 8


def test_runs_between_modules_are_penalised():
    rates = module_error_rates([3, 5, 3, 5, 3, 5, 3, 5])
    assert rates == pytest.approx((0.25,) * 8)
    candidate = DecodeCandidate("1234", Symbology.CODE_39, per_module_error_rates=rates)
    assert accept(candidate) is False


def test_slightly_uneven_print_is_still_accepted():
    rates = module_error_rates([10, 20, 11, 30, 19, 10])
    assert rates == pytest.approx((0.0, 0.0, 0.2, 0.0, 0.2, 0.0))
    assert mean_error(rates) == pytest.approx(0.4 / 6)
    assert accept(DecodeCandidate("1234", Symbology.EAN_13, per_module_error_rates=rates)) is True


def test_too_few_runs_give_no_rates():
    assert module_error_rates([2, 4, 2]) == ()


def test_frame_error_rates_on_crisp_symbol():
    image, total = _barcode_image()
    polygon = ((20, 10), (20 + total, 10), (20 + total, 50), (20, 50))

    rates = frame_error_rates(image, polygon)

    assert len(rates) == len(PATTERN)
    assert max(rates) == pytest.approx(0.0)


def test_frame_error_rates_widens_line_locator():
    image, total = _barcode_image()
    color = np.dstack([image, image, image])

    rates = frame_error_rates(color, ((20, 30), (20 + total, 30)))

    assert len(rates) == len(PATTERN)
    assert mean_error(rates) == pytest.approx(0.0)


def test_frame_error_rates_without_polygon():
    image, _ = _barcode_image()
    assert frame_error_rates(image, ()) == ()
    assert frame_error_rates(None, ((0, 0), (10, 10))) == ()
