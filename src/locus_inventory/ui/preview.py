from __future__ import annotations

import threading
from typing import Any

import customtkinter as ctk
import cv2
from PIL import Image, ImageOps

from locus_inventory.ui.theme import VS_TEXT_MUTED

PLACEHOLDER_TEXT = "Camera preview inactive"


class PreviewSurface:
    """Camera preview drawn into a CTkLabel.

    Frames arrive on the camera thread; conversion to a Tk image is always
    marshalled back onto the Tk loop, and a frame that arrives while the
    previous one is still being painted is dropped.
    """

    def __init__(self, label: ctk.CTkLabel, size: tuple[int, int] = (420, 420)) -> None:
        self._label = label
        self._size = size
        self._image: ctk.CTkImage | None = None
        self._busy = threading.Event()
        self._mapped = threading.Event()
        self._placeholder = ctk.CTkImage(
            light_image=Image.new("RGB", size, color="#2D2D30"),
            dark_image=Image.new("RGB", size, color="#2D2D30"),
            size=size,
        )
        self.clear_now(PLACEHOLDER_TEXT)

        # Readiness is read from worker threads, so track it with Tk events.
        label.bind("<Map>", lambda _event: self._mapped.set(), add="+")
        label.bind("<Unmap>", lambda _event: self._mapped.clear(), add="+")
        label.bind("<Destroy>", lambda _event: self._mapped.clear(), add="+")
        if label.winfo_ismapped():
            self._mapped.set()

    def is_ready(self) -> bool:
        return self._mapped.is_set()

    def render(self, frame: Any) -> None:
        if self._busy.is_set():
            return
        self._busy.set()
        try:
            self._label.after(0, lambda f=frame: self._paint(f))
        except Exception:
            self._busy.clear()

    def clear(self) -> None:
        try:
            self._label.after(0, lambda: self.clear_now(PLACEHOLDER_TEXT))
        except Exception:
            # Widget already destroyed.
            return

    def clear_now(self, text: str) -> None:
        if not self._label.winfo_exists():
            return
        self._image = None
        self._label.configure(image=self._placeholder, text=text, text_color=VS_TEXT_MUTED)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _paint(self, frame: Any) -> None:
        try:
            if not self._label.winfo_exists():
                return
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            pil_image = Image.fromarray(rgb_frame)
            square_image = ImageOps.fit(
                pil_image,
                self._size,
                method=Image.Resampling.BICUBIC,
                centering=(0.5, 0.5),
            )
            self._image = ctk.CTkImage(light_image=square_image, dark_image=square_image, size=self._size)
            self._label.configure(image=self._image, text="")
        finally:
            self._busy.clear()
