from __future__ import annotations

from typing import TYPE_CHECKING

from locus_inventory.scanner.errors import EmptyInput

if TYPE_CHECKING:
    from locus_inventory.scanner.session import ScanSession


def normalize_manual_code(text: str | None) -> str:
    code = (text or "").strip()
    if not code:
        raise EmptyInput("The asset code cannot be empty.")
    return code


class ManualEntry:
    """Typed-in alternative to scanning for one session."""

    def __init__(self, session: ScanSession) -> None:
        self._session = session

    def submit(self, text: str | None) -> str:
        return self._session.submit_manual(text)
