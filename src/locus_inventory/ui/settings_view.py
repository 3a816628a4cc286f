from __future__ import annotations

from pathlib import Path
from tkinter import BooleanVar, StringVar
from typing import Any, Callable

import customtkinter as ctk
from customtkinter import filedialog

from locus_inventory.config.user_settings_store import (
    FIELD_LABELS,
    InvalidSettingError,
    UserSettingsStore,
)
from locus_inventory.ui.theme import (
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BG,
    VS_BORDER,
    VS_DIVIDER,
    VS_SUCCESS,
    VS_SURFACE,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
    VS_WARNING,
)

ENGINE_OPTIONS: dict[str, str] = {"ZXing (recommended)": "zxing", "ZBar": "zbar"}
MODE_OPTIONS: dict[str, str] = {"Continuous": "continuous", "Single shot": "single_shot"}
CAMERA_OPTIONS: dict[str, str] = {"Rear camera": "environment", "Front camera": "user"}


def _label_for(options: dict[str, str], value: Any) -> str:
    for label, option in options.items():
        if option == value:
            return label
    return next(iter(options))


class SettingsView(ctk.CTkFrame):
    """Scanner and inventory preferences backed by the UserSettingsStore."""

    def __init__(
        self,
        master: Any,
        *,
        store: UserSettingsStore,
        on_settings_saved: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        super().__init__(master, fg_color=VS_BG)
        self._store = store
        self._on_settings_saved = on_settings_saved

        self._engine_var = StringVar()
        self._mode_var = StringVar()
        self._camera_var = StringVar()
        self._tick_rate_var = StringVar()
        self._threshold_var = StringVar()
        self._warning_days_var = StringVar()
        self._app_data_dir_var = StringVar()
        self._beep_var = BooleanVar(value=True)

        self._status_label: ctk.CTkLabel | None = None

        self._build_layout()
        self.refresh()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def refresh(self) -> None:
        """Reload the form inputs from the underlying store."""

        self._load(self._store.data)
        self._set_status("")

    # ------------------------------------------------------------------
    # Layout helpers
    # ------------------------------------------------------------------
    def _build_layout(self) -> None:
        self.grid_rowconfigure(0, weight=1)
        self.grid_columnconfigure(0, weight=1)

        container = ctk.CTkFrame(self, fg_color=VS_SURFACE, corner_radius=18)
        container.grid(row=0, column=0, padx=24, pady=24, sticky="nsew")
        container.grid_columnconfigure(0, weight=0)
        container.grid_columnconfigure(1, weight=1)

        ctk.CTkLabel(
            container,
            text="Settings",
            font=ctk.CTkFont(size=28, weight="bold"),
            text_color=VS_TEXT,
        ).grid(row=0, column=0, columnspan=2, sticky="w", padx=28, pady=(28, 8))
        ctk.CTkLabel(
            container,
            text="Scanner changes apply the next time the camera starts.",
            justify="left",
            wraplength=640,
            text_color=VS_TEXT_MUTED,
        ).grid(row=1, column=0, columnspan=2, sticky="w", padx=28, pady=(0, 20))

        row = 2
        row = self._build_menu(container, row=row, key="scan_engine", options=ENGINE_OPTIONS, variable=self._engine_var)
        row = self._build_menu(
            container,
            row=row,
            key="scan_mode",
            options=MODE_OPTIONS,
            variable=self._mode_var,
            helper="Single shot decodes only when you press Capture. Use it on slow machines.",
        )
        row = self._build_menu(container, row=row, key="preferred_facing", options=CAMERA_OPTIONS, variable=self._camera_var)
        row = self._build_entry(
            container, row=row, key="scan_tick_rate", variable=self._tick_rate_var, helper="Between 1 and 30."
        )
        row = self._build_entry(
            container,
            row=row,
            key="confidence_threshold",
            variable=self._threshold_var,
            helper="Highest average bar error accepted for linear barcodes (0 to 1).",
        )
        row = self._build_entry(container, row=row, key="calibration_warning_days", variable=self._warning_days_var)

        ctk.CTkLabel(container, text=FIELD_LABELS["beep_enabled"], text_color=VS_TEXT, font=ctk.CTkFont(size=18)).grid(
            row=row, column=0, sticky="w", padx=28, pady=(0, 14)
        )
        ctk.CTkSwitch(container, text="", variable=self._beep_var, onvalue=True, offvalue=False).grid(
            row=row, column=1, sticky="w", padx=(0, 28), pady=(0, 14)
        )
        row += 1

        row = self._build_app_data_field(container, row=row)

        buttons_row = ctk.CTkFrame(container, fg_color=VS_SURFACE)
        buttons_row.grid(row=row, column=0, columnspan=2, sticky="ew", padx=28, pady=(12, 12))
        buttons_row.grid_columnconfigure(0, weight=1)

        ctk.CTkButton(
            buttons_row,
            text="Reset to defaults",
            width=160,
            text_color=VS_TEXT,
            fg_color=VS_SURFACE_ALT,
            hover_color=VS_DIVIDER,
            command=self._handle_reset,
        ).grid(row=0, column=1, padx=(0, 8))
        ctk.CTkButton(
            buttons_row,
            text="Save changes",
            width=180,
            text_color=VS_TEXT,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            command=self._handle_save,
        ).grid(row=0, column=2)

        self._status_label = ctk.CTkLabel(container, text="", text_color=VS_TEXT_MUTED, wraplength=640, justify="left")
        self._status_label.grid(row=row + 1, column=0, columnspan=2, sticky="w", padx=28, pady=(0, 20))

    def _build_menu(
        self,
        parent: ctk.CTkFrame,
        *,
        row: int,
        key: str,
        options: dict[str, str],
        variable: StringVar,
        helper: str | None = None,
    ) -> int:
        ctk.CTkLabel(parent, text=FIELD_LABELS[key], text_color=VS_TEXT, font=ctk.CTkFont(size=18)).grid(
            row=row, column=0, sticky="w", padx=28, pady=(0, 6)
        )
        ctk.CTkOptionMenu(
            parent,
            values=list(options),
            variable=variable,
            fg_color=VS_SURFACE_ALT,
            button_color=VS_SURFACE_ALT,
            button_hover_color=VS_BORDER,
        ).grid(row=row, column=1, sticky="w", padx=(0, 28), pady=(0, 6))
        return self._build_helper(parent, row=row, helper=helper)

    def _build_entry(
        self,
        parent: ctk.CTkFrame,
        *,
        row: int,
        key: str,
        variable: StringVar,
        helper: str | None = None,
    ) -> int:
        ctk.CTkLabel(parent, text=FIELD_LABELS[key], text_color=VS_TEXT, font=ctk.CTkFont(size=18)).grid(
            row=row, column=0, sticky="w", padx=28, pady=(0, 6)
        )
        ctk.CTkEntry(
            parent,
            textvariable=variable,
            width=80,
            fg_color=VS_BG,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
        ).grid(row=row, column=1, sticky="w", padx=(0, 28), pady=(0, 6))
        return self._build_helper(parent, row=row, helper=helper)

    def _build_helper(self, parent: ctk.CTkFrame, *, row: int, helper: str | None) -> int:
        if not helper:
            return row + 1
        ctk.CTkLabel(
            parent,
            text=helper,
            text_color=VS_TEXT_MUTED,
            wraplength=540,
            font=ctk.CTkFont(size=14),
            justify="left",
        ).grid(row=row + 1, column=0, columnspan=2, sticky="w", padx=28, pady=(0, 14))
        return row + 2

    def _build_app_data_field(self, parent: ctk.CTkFrame, *, row: int) -> int:
        ctk.CTkLabel(
            parent, text=FIELD_LABELS["app_data_dir"], text_color=VS_TEXT, font=ctk.CTkFont(size=18)
        ).grid(row=row, column=0, sticky="w", padx=28, pady=(0, 6))

        field_container = ctk.CTkFrame(parent, fg_color=VS_SURFACE)
        field_container.grid(row=row, column=1, sticky="w", padx=(0, 28), pady=(0, 6))

        ctk.CTkEntry(
            field_container,
            textvariable=self._app_data_dir_var,
            fg_color=VS_BG,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
            width=480,
        ).grid(row=0, column=0, sticky="w", padx=(0, 12))
        ctk.CTkButton(
            field_container,
            text="Browse",
            width=100,
            text_color=VS_TEXT,
            fg_color=VS_SURFACE_ALT,
            hover_color=VS_DIVIDER,
            command=self._choose_app_data_dir,
        ).grid(row=0, column=1, sticky="w")

        return self._build_helper(
            parent, row=row, helper="Holds the inventory database, logs and these settings."
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _load(self, data: dict[str, Any]) -> None:
        self._engine_var.set(_label_for(ENGINE_OPTIONS, data.get("scan_engine")))
        self._mode_var.set(_label_for(MODE_OPTIONS, data.get("scan_mode")))
        self._camera_var.set(_label_for(CAMERA_OPTIONS, data.get("preferred_facing")))
        self._tick_rate_var.set(f"{data.get('scan_tick_rate', 12):g}")
        self._threshold_var.set(f"{data.get('confidence_threshold', 0.10):g}")
        self._warning_days_var.set(str(data.get("calibration_warning_days", 30)))
        self._beep_var.set(bool(data.get("beep_enabled", True)))
        self._app_data_dir_var.set(str(data.get("app_data_dir", "")))

    def _handle_reset(self) -> None:
        try:
            updated = self._store.restore_defaults()
        except InvalidSettingError as exc:
            self._set_status(str(exc), tone="warning")
            return
        self._load(updated)
        self._set_status("Defaults restored.", tone="success")
        if self._on_settings_saved is not None:
            self._on_settings_saved(updated)

    def _handle_save(self) -> None:
        payload = {
            "scan_engine": ENGINE_OPTIONS.get(self._engine_var.get(), ""),
            "scan_mode": MODE_OPTIONS.get(self._mode_var.get(), ""),
            "preferred_facing": CAMERA_OPTIONS.get(self._camera_var.get(), ""),
            "scan_tick_rate": self._tick_rate_var.get(),
            "confidence_threshold": self._threshold_var.get(),
            "calibration_warning_days": self._warning_days_var.get(),
            "beep_enabled": self._beep_var.get(),
            "app_data_dir": self._app_data_dir_var.get(),
        }
        try:
            updated = self._store.update(**payload)
        except InvalidSettingError as exc:
            self._set_status(str(exc), tone="warning")
            return

        self._load(updated)
        self._set_status("Settings saved.", tone="success")
        if self._on_settings_saved is not None:
            self._on_settings_saved(updated)

    def _choose_app_data_dir(self) -> None:
        initial_dir = self._app_data_dir_var.get().strip() or None
        selected = filedialog.askdirectory(title="Select app data directory", initialdir=initial_dir)
        if selected:
            self._app_data_dir_var.set(str(Path(selected).expanduser()))

    def _set_status(self, message: str, *, tone: str = "info") -> None:
        if self._status_label is None:
            return
        color_map = {
            "info": VS_TEXT_MUTED,
            "success": VS_SUCCESS,
            "warning": VS_WARNING,
        }
        self._status_label.configure(text=message, text_color=color_map.get(tone, VS_TEXT_MUTED))
