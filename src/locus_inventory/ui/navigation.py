from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

import customtkinter as ctk

from locus_inventory.ui.theme import VS_ACCENT, VS_ACCENT_HOVER, VS_BORDER, VS_SURFACE, VS_TEXT, VS_TEXT_MUTED


@dataclass(frozen=True, slots=True)
class NavigationItem:
    key: str
    label: str


NAV_ITEMS: tuple[NavigationItem, ...] = (
    NavigationItem(key="new_item", label="New item"),
    NavigationItem(key="inventory", label="Inventory"),
    NavigationItem(key="settings", label="Settings"),
)


class SideNav(ctk.CTkFrame):
    def __init__(
        self,
        master: Any,
        *,
        items: Sequence[NavigationItem],
        on_select: Callable[[str], None],
        title: str = "",
    ) -> None:
        super().__init__(master, width=200, corner_radius=0, fg_color=VS_SURFACE)
        self._on_select = on_select
        self._buttons: dict[str, ctk.CTkButton] = {}
        self._selected: str | None = None

        ctk.CTkLabel(
            self,
            text=title,
            font=ctk.CTkFont(size=18, weight="bold"),
            text_color=VS_TEXT,
        ).pack(anchor="w", padx=18, pady=(22, 18))

        for item in items:
            button = ctk.CTkButton(
                self,
                text=item.label,
                anchor="w",
                height=40,
                fg_color="transparent",
                hover_color=VS_BORDER,
                text_color=VS_TEXT_MUTED,
                command=lambda key=item.key: self._handle_click(key),
            )
            button.pack(fill="x", padx=12, pady=4)
            self._buttons[item.key] = button

    def select(self, key: str) -> None:
        self._selected = key
        for name, button in self._buttons.items():
            if name == key:
                button.configure(fg_color=VS_ACCENT, hover_color=VS_ACCENT_HOVER, text_color=VS_TEXT)
            else:
                button.configure(fg_color="transparent", hover_color=VS_BORDER, text_color=VS_TEXT_MUTED)

    def _handle_click(self, key: str) -> None:
        if key == self._selected:
            return
        self.select(key)
        self._on_select(key)
