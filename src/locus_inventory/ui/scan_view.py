from __future__ import annotations

import logging
import threading
import tkinter.messagebox as messagebox
from tkinter import StringVar
from typing import Any, Callable

import customtkinter as ctk
from customtkinter import filedialog

from locus_inventory.models import ITEM_STATES, InventoryItem
from locus_inventory.scanner import (
    CameraCapabilities,
    Decoder,
    EmptyInput,
    ErrorKind,
    FacingMode,
    FeedbackEmitter,
    FrameSource,
    ManualEntry,
    ScanConfig,
    ScanSession,
    ScanState,
    SessionBusyError,
    SessionClosedError,
    message_for,
)
from locus_inventory.services import DuplicateAssetCodeError, InvalidItemError, InventoryService
from locus_inventory.ui.preview import PreviewSurface
from locus_inventory.ui.theme import (
    SCAN_BORDER_ACCEPTED,
    SCAN_BORDER_ACTIVE,
    SCAN_BORDER_FAILED,
    SCAN_BORDER_IDLE,
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BG,
    VS_BORDER,
    VS_CARD,
    VS_SUCCESS,
    VS_SURFACE,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
    VS_WARNING,
)
from locus_inventory.utils import InvalidDate, format_relative_time, parse_calibration_date

logger = logging.getLogger(__name__)

FACING_OPTIONS: dict[str, FacingMode] = {
    "Rear camera": FacingMode.ENVIRONMENT,
    "Front camera": FacingMode.USER,
}
ACCEPT_FLASH_MS = 1200


class ScanView(ctk.CTkFrame):
    """Register a new item: scan (or type) its asset code, then fill in the details."""

    def __init__(
        self,
        master: Any,
        inventory_service: InventoryService,
        *,
        frame_source: FrameSource,
        decoder: Decoder,
        scan_config: ScanConfig,
        user_id: str,
        on_item_saved: Callable[[int], None] | None = None,
    ) -> None:
        super().__init__(master, fg_color=VS_BG)
        self._service = inventory_service
        self._user_id = user_id
        self._on_item_saved = on_item_saved
        self._scan_config = scan_config

        self._scan_status_var = StringVar(value="Press Start to scan the asset tag.")
        self._manual_code_var = StringVar()
        self._facing_var = StringVar(
            value="Front camera" if scan_config.facing_mode is FacingMode.USER else "Rear camera"
        )
        self._zoom_var = ctk.DoubleVar(value=1.0)
        self._form_status_var = StringVar(value="")
        self._asset_code_var = StringVar()
        self._field_vars: dict[str, StringVar] = {
            "brand": StringVar(),
            "description": StringVar(),
            "calibration_due_date": StringVar(),
            "model": StringVar(),
            "serial_number": StringVar(),
            "location": StringVar(),
            "responsible_sector": StringVar(),
            "state": StringVar(value=ITEM_STATES[0]),
        }
        self._notes_box: ctk.CTkTextbox | None = None
        self._border_reset_job: str | None = None

        self._build_layout()

        feedback = FeedbackEmitter(
            beep=scan_config.beep,
            on_visual=lambda code: self.after(0, self._flash_accepted),
            on_message=lambda message, kind: self.after(0, lambda: self._set_scan_status(message, tone="warning")),
        )
        self._session = ScanSession(
            frame_source,
            decoder,
            config=scan_config,
            feedback=feedback,
            on_complete=lambda code: self.after(0, lambda: self._handle_code(code)),
            on_failed=lambda kind: self.after(0, lambda: self._handle_failure(kind)),
            on_capabilities=lambda caps: self.after(0, lambda: self._handle_capabilities(caps)),
        )
        self._manual_entry = ManualEntry(self._session)
        self._configure_controls()
        self.refresh_recent_items()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def session(self) -> ScanSession:
        return self._session

    def release_camera(self) -> None:
        """Drop the current scan when the view is hidden or the app closes."""

        self._session.reset()
        self._hide_zoom()
        self._configure_controls()

    def refresh_recent_items(self) -> None:
        for widget in self._recent_list.winfo_children():
            widget.destroy()

        items = self._service.list_recent_for_user(self._user_id)
        if not items:
            ctk.CTkLabel(self._recent_list, text="No items registered yet.", text_color=VS_TEXT_MUTED).pack(
                anchor="w", padx=12, pady=6
            )
            return

        for item in items:
            row = ctk.CTkFrame(self._recent_list, fg_color=VS_SURFACE, corner_radius=10)
            row.pack(fill="x", padx=8, pady=4)
            ctk.CTkLabel(row, text=item.display_label, text_color=VS_TEXT, anchor="w").pack(
                anchor="w", padx=12, pady=(6, 0)
            )
            ctk.CTkLabel(
                row,
                text=format_relative_time(item.created_at),
                text_color=VS_TEXT_MUTED,
                font=ctk.CTkFont(size=12),
                anchor="w",
            ).pack(anchor="w", padx=12, pady=(0, 6))

    # ------------------------------------------------------------------
    # Layout construction
    # ------------------------------------------------------------------
    def _build_layout(self) -> None:
        self.grid_columnconfigure(0, weight=1)
        self.grid_columnconfigure(1, weight=1)
        self.grid_rowconfigure(0, weight=1)

        scanner_card = ctk.CTkFrame(self, fg_color=VS_SURFACE_ALT, corner_radius=16)
        scanner_card.grid(row=0, column=0, sticky="nsew", padx=(24, 12), pady=24)
        self._build_scanner_panel(scanner_card)

        form_card = ctk.CTkFrame(self, fg_color=VS_SURFACE_ALT, corner_radius=16)
        form_card.grid(row=0, column=1, sticky="nsew", padx=(12, 24), pady=24)
        self._build_form_panel(form_card)

    def _build_scanner_panel(self, frame: ctk.CTkFrame) -> None:
        frame.grid_columnconfigure(0, weight=1)
        header_font = ctk.CTkFont(size=20, weight="bold")
        body_font = ctk.CTkFont(size=15)

        ctk.CTkLabel(frame, text="Scan asset tag", font=header_font, text_color=VS_TEXT).grid(
            row=0, column=0, padx=20, pady=(20, 8), sticky="w"
        )

        self._scan_status_label = ctk.CTkLabel(
            frame,
            textvariable=self._scan_status_var,
            text_color=VS_TEXT,
            font=body_font,
            justify="left",
            wraplength=420,
        )
        self._scan_status_label.grid(row=1, column=0, padx=20, pady=(0, 8), sticky="w")

        self._preview_frame = ctk.CTkFrame(
            frame,
            corner_radius=18,
            fg_color=VS_CARD,
            border_width=3,
            border_color=SCAN_BORDER_IDLE,
        )
        self._preview_frame.grid(row=2, column=0, padx=20, pady=(0, 12))
        preview_label = ctk.CTkLabel(
            self._preview_frame,
            text="",
            text_color=VS_TEXT_MUTED,
            font=ctk.CTkFont(size=16),
            compound="center",
        )
        preview_label.pack(expand=True, fill="both", padx=10, pady=10)
        self._preview = PreviewSurface(preview_label)

        controls = ctk.CTkFrame(frame, fg_color="transparent")
        controls.grid(row=3, column=0, padx=20, pady=(0, 8), sticky="ew")

        self._start_button = ctk.CTkButton(
            controls, text="Start", command=self._start_scan, fg_color=VS_ACCENT, hover_color=VS_ACCENT_HOVER
        )
        self._start_button.pack(side="left", padx=(0, 8))
        self._cancel_button = ctk.CTkButton(
            controls, text="Cancel", command=self._cancel_scan, fg_color=VS_SURFACE, hover_color=VS_BORDER
        )
        self._cancel_button.pack(side="left", padx=(0, 8))
        self._retry_button = ctk.CTkButton(
            controls, text="Retry", command=self._retry_scan, fg_color=VS_SURFACE, hover_color=VS_BORDER
        )
        self._retry_button.pack(side="left", padx=(0, 8))
        ctk.CTkOptionMenu(
            controls,
            values=list(FACING_OPTIONS),
            variable=self._facing_var,
            fg_color=VS_SURFACE,
            button_color=VS_SURFACE,
            button_hover_color=VS_BORDER,
        ).pack(side="right")

        self._capture_row = ctk.CTkFrame(frame, fg_color="transparent")
        self._capture_row.grid(row=4, column=0, padx=20, pady=(0, 8), sticky="ew")
        self._capture_button = ctk.CTkButton(
            self._capture_row,
            text="Capture",
            command=self._capture_frame,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
        )
        self._capture_button.pack(side="left", padx=(0, 8))
        self._image_button = ctk.CTkButton(
            self._capture_row,
            text="Open image",
            command=self._open_image,
            fg_color=VS_SURFACE,
            hover_color=VS_BORDER,
        )
        self._image_button.pack(side="left")
        self._capture_row.grid_remove()

        self._zoom_row = ctk.CTkFrame(frame, fg_color="transparent")
        self._zoom_row.grid(row=5, column=0, padx=20, pady=(0, 8), sticky="ew")
        self._zoom_row.grid_columnconfigure(1, weight=1)
        ctk.CTkLabel(self._zoom_row, text="Zoom", text_color=VS_TEXT_MUTED).grid(row=0, column=0, padx=(0, 8))
        self._zoom_slider = ctk.CTkSlider(
            self._zoom_row,
            variable=self._zoom_var,
            from_=1.0,
            to=5.0,
            command=self._handle_zoom,
        )
        self._zoom_slider.grid(row=0, column=1, sticky="ew")
        self._zoom_row.grid_remove()

        manual_row = ctk.CTkFrame(frame, fg_color="transparent")
        manual_row.grid(row=6, column=0, padx=20, pady=(4, 20), sticky="ew")
        manual_row.grid_columnconfigure(0, weight=1)
        manual_entry = ctk.CTkEntry(
            manual_row,
            textvariable=self._manual_code_var,
            placeholder_text="Type the asset code",
            fg_color=VS_BG,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
            placeholder_text_color=VS_TEXT_MUTED,
        )
        manual_entry.grid(row=0, column=0, sticky="ew", padx=(0, 8))
        manual_entry.bind("<Return>", lambda _event: self._submit_manual_code())
        self._manual_button = ctk.CTkButton(
            manual_row,
            text="Use code",
            command=self._submit_manual_code,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
        )
        self._manual_button.grid(row=0, column=1)

    def _build_form_panel(self, frame: ctk.CTkFrame) -> None:
        frame.grid_columnconfigure(1, weight=1)
        header_font = ctk.CTkFont(size=20, weight="bold")
        label_font = ctk.CTkFont(size=15)

        ctk.CTkLabel(frame, text="Item details", font=header_font, text_color=VS_TEXT).grid(
            row=0, column=0, columnspan=2, padx=20, pady=(20, 12), sticky="w"
        )

        ctk.CTkLabel(frame, text="Asset code", font=label_font, text_color=VS_TEXT).grid(
            row=1, column=0, padx=20, pady=6, sticky="w"
        )
        ctk.CTkEntry(
            frame,
            textvariable=self._asset_code_var,
            state="disabled",
            fg_color=VS_SURFACE,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
        ).grid(row=1, column=1, padx=(0, 20), pady=6, sticky="ew")

        labels = (
            ("brand", "Brand *"),
            ("description", "Description *"),
            ("calibration_due_date", "Calibration due (YYYY-MM-DD)"),
            ("model", "Model"),
            ("serial_number", "Serial number"),
            ("location", "Location"),
            ("responsible_sector", "Responsible sector"),
        )
        row = 2
        for key, text in labels:
            ctk.CTkLabel(frame, text=text, font=label_font, text_color=VS_TEXT).grid(
                row=row, column=0, padx=20, pady=6, sticky="w"
            )
            ctk.CTkEntry(
                frame,
                textvariable=self._field_vars[key],
                fg_color=VS_BG,
                border_color=VS_BORDER,
                text_color=VS_TEXT,
            ).grid(row=row, column=1, padx=(0, 20), pady=6, sticky="ew")
            row += 1

        ctk.CTkLabel(frame, text="State", font=label_font, text_color=VS_TEXT).grid(
            row=row, column=0, padx=20, pady=6, sticky="w"
        )
        ctk.CTkOptionMenu(
            frame,
            values=list(ITEM_STATES),
            variable=self._field_vars["state"],
            fg_color=VS_SURFACE,
            button_color=VS_SURFACE,
            button_hover_color=VS_BORDER,
        ).grid(row=row, column=1, padx=(0, 20), pady=6, sticky="w")
        row += 1

        ctk.CTkLabel(frame, text="Notes", font=label_font, text_color=VS_TEXT).grid(
            row=row, column=0, padx=20, pady=6, sticky="nw"
        )
        self._notes_box = ctk.CTkTextbox(frame, height=70, fg_color=VS_BG, border_color=VS_BORDER, border_width=1)
        self._notes_box.grid(row=row, column=1, padx=(0, 20), pady=6, sticky="ew")
        row += 1

        self._save_button = ctk.CTkButton(
            frame,
            text="Save item",
            command=self._save_item,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            state="disabled",
        )
        self._save_button.grid(row=row, column=0, padx=20, pady=(12, 6), sticky="w")
        self._form_status_label = ctk.CTkLabel(
            frame, textvariable=self._form_status_var, text_color=VS_TEXT_MUTED, font=label_font
        )
        self._form_status_label.grid(row=row, column=1, padx=(0, 20), pady=(12, 6), sticky="w")
        row += 1

        ctk.CTkLabel(frame, text="Your recent items", font=label_font, text_color=VS_TEXT_MUTED).grid(
            row=row, column=0, columnspan=2, padx=20, pady=(12, 4), sticky="w"
        )
        row += 1
        frame.grid_rowconfigure(row, weight=1)
        self._recent_list = ctk.CTkScrollableFrame(frame, label_text="", fg_color=VS_SURFACE_ALT)
        self._recent_list.grid(row=row, column=0, columnspan=2, padx=12, pady=(0, 12), sticky="nsew")

    # ------------------------------------------------------------------
    # Scanner controls
    # ------------------------------------------------------------------
    def _start_scan(self) -> None:
        if self._session.state in (ScanState.STOPPED, ScanState.ACCEPTED):
            self._session.reset()
        try:
            self._session.start(self._preview, preferred_facing=FACING_OPTIONS[self._facing_var.get()])
        except (SessionBusyError, SessionClosedError) as exc:
            self._set_scan_status(str(exc), tone="warning")
            return
        self._set_scan_status("Starting camera…")
        self._set_border(SCAN_BORDER_ACTIVE)
        self._configure_controls()
        self._watch_start()

    def _cancel_scan(self) -> None:
        self._session.cancel()
        self._hide_zoom()
        self._set_scan_status("Scan cancelled. Start again or type the code.")
        self._set_border(SCAN_BORDER_IDLE)
        self._configure_controls()

    def _retry_scan(self) -> None:
        try:
            self._session.retry()
        except (SessionBusyError, SessionClosedError) as exc:
            self._set_scan_status(str(exc), tone="warning")
            return
        self._set_scan_status("Retrying camera…")
        self._set_border(SCAN_BORDER_ACTIVE)
        self._configure_controls()
        self._watch_start()

    def _watch_start(self) -> None:
        if not self.winfo_exists():
            return
        state = self._session.state
        if state is ScanState.STARTING:
            self.after(100, self._watch_start)
            return
        if state is ScanState.SCANNING:
            if self._session.supports_capture:
                self._set_scan_status("Frame the tag and press Capture.", tone="success")
            else:
                self._set_scan_status("Point the camera at the barcode or QR code.", tone="success")
        self._configure_controls()

    def _submit_manual_code(self) -> None:
        try:
            self._manual_entry.submit(self._manual_code_var.get())
        except EmptyInput:
            self._set_scan_status(message_for(ErrorKind.EMPTY_INPUT), tone="warning")
        except SessionClosedError:
            self._set_scan_status("A code was already captured. Save or discard it first.", tone="warning")

    def _capture_frame(self) -> None:
        self._run_in_background(self._session.capture)

    def _open_image(self) -> None:
        path = filedialog.askopenfilename(
            title="Select a photo of the asset tag",
            filetypes=[("Images", "*.png *.jpg *.jpeg *.bmp"), ("All files", "*")],
        )
        if path:
            self._run_in_background(lambda: self._session.decode_image(path))

    def _run_in_background(self, action: Callable[[], bool]) -> None:
        self._capture_button.configure(state="disabled")
        self._image_button.configure(state="disabled")
        threading.Thread(target=self._run_capture, args=(action,), name="scan-capture", daemon=True).start()

    def _run_capture(self, action: Callable[[], bool]) -> None:
        try:
            action()
        except ValueError as exc:
            logger.warning("Still image could not be decoded: %s", exc)
            self.after(0, lambda: self._set_scan_status(str(exc), tone="warning"))
        else:
            if self._session.state is ScanState.SCANNING:
                self.after(
                    0, lambda: self._set_scan_status("No code found. Adjust the tag and try again.", tone="warning")
                )
        self.after(0, self._configure_controls)

    def _handle_zoom(self, value: float) -> None:
        self._session.apply_zoom(float(value))

    def _handle_capabilities(self, capabilities: CameraCapabilities) -> None:
        zoom = capabilities.zoom_range
        if zoom is None:
            self._hide_zoom()
            return
        steps = max(1, int(round((zoom.max - zoom.min) / zoom.step))) if zoom.step > 0 else None
        self._zoom_slider.configure(from_=zoom.min, to=zoom.max, number_of_steps=steps)
        self._zoom_var.set(zoom.min)
        self._zoom_row.grid()

    def _hide_zoom(self) -> None:
        self._zoom_row.grid_remove()

    def _handle_code(self, code: str) -> None:
        if not self.winfo_exists():
            return
        self._hide_zoom()
        self._configure_controls()
        self._asset_code_var.set(code)
        self._manual_code_var.set("")

        existing = self._service.find_by_asset_code(code)
        if existing is not None:
            self._set_scan_status(f"{code} is already registered: {existing.description}", tone="warning")
            self._save_button.configure(state="disabled")
            return

        self._set_scan_status(f"Captured asset code {code}.", tone="success")
        self._save_button.configure(state="normal")
        self._form_status_var.set("Fill in the details and save.")

    def _handle_failure(self, _kind: ErrorKind) -> None:
        if not self.winfo_exists():
            return
        self._hide_zoom()
        self._set_border(SCAN_BORDER_FAILED)
        self._configure_controls()

    def _configure_controls(self) -> None:
        state = self._session.state
        scanning = state in (ScanState.STARTING, ScanState.SCANNING)
        self._start_button.configure(state="disabled" if scanning or state is ScanState.FAILED else "normal")
        self._cancel_button.configure(state="normal" if scanning else "disabled")
        self._retry_button.configure(state="normal" if state is ScanState.FAILED else "disabled")
        self._manual_button.configure(
            state="disabled" if state in (ScanState.ACCEPTED, ScanState.STOPPED) else "normal"
        )
        if self._session.supports_capture:
            self._capture_row.grid()
            capture_state = "normal" if state is ScanState.SCANNING else "disabled"
            self._capture_button.configure(state=capture_state)
            self._image_button.configure(state=capture_state)
        else:
            self._capture_row.grid_remove()

    # ------------------------------------------------------------------
    # Item form
    # ------------------------------------------------------------------
    def _save_item(self) -> None:
        code = self._asset_code_var.get().strip()
        if not code:
            self._set_form_status("Scan or type an asset code first.", tone="warning")
            return

        try:
            due_date = parse_calibration_date(self._field_vars["calibration_due_date"].get())
        except InvalidDate as exc:
            self._set_form_status(str(exc), tone="warning")
            return

        notes = self._notes_box.get("1.0", "end").strip() if self._notes_box is not None else ""
        item = InventoryItem(
            asset_code=code,
            brand=self._field_vars["brand"].get(),
            description=self._field_vars["description"].get(),
            created_by=self._user_id,
            calibration_due_date=due_date,
            model=self._field_vars["model"].get(),
            serial_number=self._field_vars["serial_number"].get(),
            location=self._field_vars["location"].get(),
            responsible_sector=self._field_vars["responsible_sector"].get(),
            state=self._field_vars["state"].get(),
            notes=notes,
        )

        try:
            item_id = self._service.create_item(item)
        except InvalidItemError as exc:
            self._set_form_status(str(exc), tone="warning")
            return
        except DuplicateAssetCodeError as exc:
            messagebox.showwarning("Duplicate asset code", str(exc))
            return

        self._reset_form()
        self._session.reset()
        self._set_border(SCAN_BORDER_IDLE)
        self._configure_controls()
        self._set_scan_status("Item saved. Press Start to scan the next tag.", tone="success")
        self._set_form_status(f"Saved {code}.", tone="success")
        self.refresh_recent_items()
        if self._on_item_saved is not None:
            self._on_item_saved(item_id)

    def _reset_form(self) -> None:
        self._asset_code_var.set("")
        for key, var in self._field_vars.items():
            var.set(ITEM_STATES[0] if key == "state" else "")
        if self._notes_box is not None:
            self._notes_box.delete("1.0", "end")
        self._save_button.configure(state="disabled")

    # ------------------------------------------------------------------
    # Status helpers
    # ------------------------------------------------------------------
    def _set_scan_status(self, message: str, *, tone: str = "info") -> None:
        self._scan_status_var.set(message)
        self._scan_status_label.configure(text_color=self._tone_color(tone))

    def _set_form_status(self, message: str, *, tone: str = "info") -> None:
        self._form_status_var.set(message)
        self._form_status_label.configure(text_color=self._tone_color(tone))

    def _flash_accepted(self) -> None:
        if not self.winfo_exists():
            return
        self._set_border(SCAN_BORDER_ACCEPTED)
        if self._border_reset_job is not None:
            self.after_cancel(self._border_reset_job)
        self._border_reset_job = self.after(ACCEPT_FLASH_MS, self._clear_flash)

    def _clear_flash(self) -> None:
        self._border_reset_job = None
        self._set_border(SCAN_BORDER_IDLE)

    def _set_border(self, color: str) -> None:
        self._preview_frame.configure(border_color=color)

    @staticmethod
    def _tone_color(tone: str) -> str:
        if tone == "success":
            return VS_SUCCESS
        if tone == "warning":
            return VS_WARNING
        return VS_TEXT
