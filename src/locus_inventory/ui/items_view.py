from __future__ import annotations

import tkinter.messagebox as messagebox
from tkinter import StringVar
from typing import Any

import customtkinter as ctk

from locus_inventory.models import ITEM_STATES, InventoryItem
from locus_inventory.services import InvalidItemError, InventoryService, ItemNotFoundError
from locus_inventory.ui.theme import (
    CALIBRATION_COLORS,
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BG,
    VS_BORDER,
    VS_DANGER,
    VS_DANGER_HOVER,
    VS_DIVIDER,
    VS_SURFACE,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
    VS_WARNING,
)
from locus_inventory.utils import (
    InvalidDate,
    calibration_status,
    format_calibration_date,
    parse_calibration_date,
    to_date_input,
)

STATUS_FILTERS: dict[str, str] = {"All": "all", "Expired": "expired", "Valid": "valid"}
STATUS_LABELS: dict[str, str] = {"expired": "Expired", "valid": "Valid", "na": "N/A"}


class InventoryView(ctk.CTkFrame):
    """Searchable list of registered items with their calibration status."""

    def __init__(self, master: Any, inventory_service: InventoryService, *, warning_days: int = 30) -> None:
        super().__init__(master, fg_color=VS_BG)
        self._service = inventory_service
        self._warning_days = warning_days

        self._search_var = StringVar()
        self._filter_var = StringVar(value="All")
        self._summary_var = StringVar(value="")
        self._search_job: str | None = None

        self._build_layout()
        self.refresh()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def set_warning_days(self, warning_days: int) -> None:
        self._warning_days = warning_days
        self.refresh()

    def refresh(self) -> None:
        items = self._service.list_items(
            search=self._search_var.get(),
            status=STATUS_FILTERS.get(self._filter_var.get(), "all"),  # type: ignore[arg-type]
        )
        self._render_items(items)

        summary = self._service.calibration_summary(warning_days=self._warning_days)
        self._summary_var.set(
            f"{summary['total']} items · {summary['expired']} expired · "
            f"{summary['due_soon']} due within {self._warning_days} days · "
            f"{summary['not_applicable']} without calibration"
        )

    # ------------------------------------------------------------------
    # Layout construction
    # ------------------------------------------------------------------
    def _build_layout(self) -> None:
        self.grid_rowconfigure(0, weight=1)
        self.grid_columnconfigure(0, weight=1)

        container = ctk.CTkFrame(self, fg_color=VS_SURFACE_ALT, corner_radius=16)
        container.grid(row=0, column=0, sticky="nsew", padx=24, pady=24)
        container.grid_columnconfigure(0, weight=1)
        container.grid_rowconfigure(3, weight=1)

        ctk.CTkLabel(
            container,
            text="Inventory",
            font=ctk.CTkFont(size=20, weight="bold"),
            text_color=VS_TEXT,
        ).grid(row=0, column=0, padx=20, pady=(20, 8), sticky="w")

        filters = ctk.CTkFrame(container, fg_color="transparent")
        filters.grid(row=1, column=0, padx=20, pady=(0, 8), sticky="ew")
        filters.grid_columnconfigure(0, weight=1)

        search_entry = ctk.CTkEntry(
            filters,
            textvariable=self._search_var,
            placeholder_text="Search by code, brand or description",
            fg_color=VS_BG,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
            placeholder_text_color=VS_TEXT_MUTED,
        )
        search_entry.grid(row=0, column=0, sticky="ew", padx=(0, 12))
        search_entry.bind("<KeyRelease>", lambda _event: self._schedule_search())

        ctk.CTkSegmentedButton(
            filters,
            values=list(STATUS_FILTERS),
            variable=self._filter_var,
            command=lambda _value: self.refresh(),
        ).grid(row=0, column=1)

        ctk.CTkLabel(container, textvariable=self._summary_var, text_color=VS_TEXT_MUTED).grid(
            row=2, column=0, padx=20, pady=(0, 8), sticky="w"
        )

        self._item_list = ctk.CTkScrollableFrame(container, label_text="", fg_color=VS_SURFACE_ALT)
        self._item_list.grid(row=3, column=0, padx=12, pady=(0, 12), sticky="nsew")
        self._item_list.grid_columnconfigure(0, weight=1)

    def _render_items(self, items: list[InventoryItem]) -> None:
        for widget in self._item_list.winfo_children():
            widget.destroy()

        if not items:
            ctk.CTkLabel(self._item_list, text="No items found.", text_color=VS_TEXT_MUTED).grid(
                row=0, column=0, padx=12, pady=6, sticky="w"
            )
            return

        for row_index, item in enumerate(items):
            row = ctk.CTkFrame(self._item_list, fg_color=VS_SURFACE, corner_radius=12)
            row.grid(row=row_index, column=0, padx=8, pady=4, sticky="ew")
            row.grid_columnconfigure(0, weight=1)

            ctk.CTkLabel(
                row,
                text=item.display_label,
                text_color=VS_TEXT,
                font=ctk.CTkFont(size=15, weight="bold"),
                anchor="w",
            ).grid(row=0, column=0, padx=14, pady=(8, 0), sticky="w")
            ctk.CTkLabel(
                row,
                text=f"Calibration: {format_calibration_date(item.calibration_due_date)}",
                text_color=VS_TEXT_MUTED,
                anchor="w",
            ).grid(row=1, column=0, padx=14, pady=(0, 8), sticky="w")

            status = calibration_status(item.calibration_due_date)
            ctk.CTkLabel(
                row,
                text=STATUS_LABELS[status],
                text_color=CALIBRATION_COLORS[status],
                font=ctk.CTkFont(size=13, weight="bold"),
            ).grid(row=0, column=1, rowspan=2, padx=8)

            ctk.CTkButton(
                row,
                text="Edit",
                width=70,
                fg_color=VS_ACCENT,
                hover_color=VS_ACCENT_HOVER,
                command=lambda item_id=item.id: self._open_editor(item_id),
            ).grid(row=0, column=2, rowspan=2, padx=(8, 4))
            ctk.CTkButton(
                row,
                text="Delete",
                width=70,
                fg_color=VS_DANGER,
                hover_color=VS_DANGER_HOVER,
                command=lambda target=item: self._confirm_delete(target),
            ).grid(row=0, column=3, rowspan=2, padx=(4, 12))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _schedule_search(self) -> None:
        if self._search_job is not None:
            self.after_cancel(self._search_job)
        self._search_job = self.after(250, self._run_search)

    def _run_search(self) -> None:
        self._search_job = None
        self.refresh()

    def _open_editor(self, item_id: int | None) -> None:
        if item_id is None:
            return
        try:
            item = self._service.get_item(item_id)
        except ItemNotFoundError:
            self.refresh()
            return
        ItemEditDialog(self, self._service, item)

    def _confirm_delete(self, item: InventoryItem) -> None:
        if item.id is None:
            return
        if not messagebox.askyesno("Delete item", f"Delete {item.asset_code} ({item.description})?"):
            return
        try:
            self._service.delete_item(item.id)
        except ItemNotFoundError:
            pass
        self.refresh()


class ItemEditDialog(ctk.CTkToplevel):
    FIELDS: tuple[tuple[str, str], ...] = (
        ("brand", "Brand *"),
        ("description", "Description *"),
        ("calibration_due_date", "Calibration due (YYYY-MM-DD)"),
        ("model", "Model"),
        ("serial_number", "Serial number"),
        ("location", "Location"),
        ("responsible_sector", "Responsible sector"),
        ("notes", "Notes"),
    )

    def __init__(self, master: InventoryView, service: InventoryService, item: InventoryItem) -> None:
        super().__init__(master)
        self.title(f"Edit {item.asset_code}")
        self.resizable(False, False)
        self.configure(fg_color=VS_BG)
        self.transient(master)
        self.grab_set()
        self._service = service
        self._parent = master
        self._item = item

        self._vars: dict[str, StringVar] = {}
        for key, _label in self.FIELDS:
            value = getattr(item, key)
            if key == "calibration_due_date":
                value = to_date_input(value)
            self._vars[key] = StringVar(value=value or "")
        self._state_var = StringVar(value=item.state or ITEM_STATES[0])
        self._status_var = StringVar(value="")

        self._build_form()

    def _build_form(self) -> None:
        container = ctk.CTkFrame(
            self,
            corner_radius=20,
            fg_color=VS_SURFACE,
            border_width=1,
            border_color=VS_DIVIDER,
        )
        container.pack(fill="both", expand=True, padx=24, pady=24)
        container.grid_columnconfigure(1, weight=1)

        label_font = ctk.CTkFont(size=15)
        ctk.CTkLabel(
            container,
            text=f"Asset code {self._item.asset_code}",
            font=ctk.CTkFont(size=20, weight="bold"),
            text_color=VS_TEXT,
        ).grid(row=0, column=0, columnspan=2, padx=20, pady=(20, 12), sticky="w")

        row = 1
        for key, label in self.FIELDS:
            ctk.CTkLabel(container, text=label, font=label_font, text_color=VS_TEXT).grid(
                row=row, column=0, padx=20, pady=6, sticky="w"
            )
            ctk.CTkEntry(
                container,
                textvariable=self._vars[key],
                width=320,
                fg_color=VS_BG,
                border_color=VS_BORDER,
                text_color=VS_TEXT,
            ).grid(row=row, column=1, padx=(0, 20), pady=6, sticky="ew")
            row += 1

        ctk.CTkLabel(container, text="State", font=label_font, text_color=VS_TEXT).grid(
            row=row, column=0, padx=20, pady=6, sticky="w"
        )
        ctk.CTkOptionMenu(
            container,
            values=list(ITEM_STATES),
            variable=self._state_var,
            fg_color=VS_BG,
            button_color=VS_ACCENT,
            button_hover_color=VS_ACCENT_HOVER,
        ).grid(row=row, column=1, padx=(0, 20), pady=6, sticky="w")
        row += 1

        ctk.CTkLabel(container, textvariable=self._status_var, text_color=VS_WARNING).grid(
            row=row, column=0, columnspan=2, padx=20, pady=(6, 0), sticky="w"
        )
        row += 1

        button_row = ctk.CTkFrame(container, fg_color="transparent")
        button_row.grid(row=row, column=0, columnspan=2, padx=20, pady=(8, 20), sticky="ew")
        button_row.grid_columnconfigure((0, 1), weight=1)
        ctk.CTkButton(
            button_row,
            text="Cancel",
            fg_color=VS_SURFACE_ALT,
            hover_color=VS_DIVIDER,
            text_color=VS_TEXT,
            command=self.destroy,
        ).grid(row=0, column=0, padx=(0, 10), sticky="ew")
        ctk.CTkButton(
            button_row,
            text="Save changes",
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            command=self._handle_save,
        ).grid(row=0, column=1, padx=(10, 0), sticky="ew")

    def _handle_save(self) -> None:
        changes: dict[str, Any] = {key: var.get() for key, var in self._vars.items()}
        changes["state"] = self._state_var.get()
        try:
            changes["calibration_due_date"] = parse_calibration_date(changes["calibration_due_date"])
        except InvalidDate as exc:
            self._status_var.set(str(exc))
            return

        try:
            self._service.update_item(self._item.id, **changes)
        except InvalidItemError as exc:
            self._status_var.set(str(exc))
            return
        except ItemNotFoundError:
            self._status_var.set("This item was deleted in the meantime.")
            return

        self._parent.refresh()
        self.destroy()
