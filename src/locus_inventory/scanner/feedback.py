from __future__ import annotations

import logging
from typing import Callable, Optional

from locus_inventory.scanner.types import ErrorKind
from locus_inventory.utils.audio import play_accept_tone_async

logger = logging.getLogger(__name__)

MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.PERMISSION_DENIED: (
        "Camera access was denied. Allow camera access in the system settings, "
        "then retry or type the code manually."
    ),
    ErrorKind.DEVICE_UNAVAILABLE: (
        "No usable camera was found. Check that it is connected and not used by "
        "another app, then retry or type the code manually."
    ),
    ErrorKind.TARGET_MISSING: "The camera preview is not ready yet. Retry in a moment.",
    ErrorKind.EMPTY_INPUT: "Enter the asset code before confirming.",
}


def message_for(kind: ErrorKind) -> str:
    return MESSAGES.get(kind, "The scanner stopped unexpectedly. Retry or type the code manually.")


class FeedbackEmitter:
    """Side effects for the end of a scan: a tone and highlight on accept, a message on failure."""

    def __init__(
        self,
        *,
        beep: bool = True,
        play_tone: Callable[[], None] = play_accept_tone_async,
        on_visual: Optional[Callable[[str], None]] = None,
        on_message: Optional[Callable[[str, ErrorKind], None]] = None,
    ) -> None:
        self._beep = beep
        self._play_tone = play_tone
        self._on_visual = on_visual
        self._on_message = on_message

    def on_accept(self, code: str) -> None:
        if self._beep:
            try:
                self._play_tone()
            except Exception:
                logger.debug("Accept tone unavailable", exc_info=True)

        if self._on_visual is not None:
            try:
                self._on_visual(code)
            except Exception:
                logger.debug("Accept highlight failed", exc_info=True)

    def on_fail(self, kind: ErrorKind) -> str:
        message = message_for(kind)
        logger.info("Scan failed: %s", kind.value)
        if self._on_message is not None:
            self._on_message(message, kind)
        return message
