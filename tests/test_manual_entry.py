from __future__ import annotations

import pytest

from locus_inventory.scanner.errors import EmptyInput, ScannerError
from locus_inventory.scanner.manual import normalize_manual_code
from locus_inventory.scanner.types import ErrorKind


def test_manual_code_is_trimmed():
    assert normalize_manual_code("  LOC-0007\t") == "LOC-0007"


@pytest.mark.parametrize("text", ["", "   ", "\n", None])
def test_blank_manual_code_is_rejected(text):
    with pytest.raises(EmptyInput) as excinfo:
        normalize_manual_code(text)

    assert excinfo.value.kind is ErrorKind.EMPTY_INPUT
    assert isinstance(excinfo.value, ScannerError)
    assert isinstance(excinfo.value, ValueError)
