from __future__ import annotations

import logging
import os
import sys
import tkinter.messagebox as messagebox

import customtkinter as ctk

import locus_inventory.config.settings as app_config
from locus_inventory.data import Database
from locus_inventory.scanner import (
    EngineUnavailable,
    OpenCVFrameSource,
    build_available_engine,
    build_decoder,
)
from locus_inventory.services import InventoryService
from locus_inventory.ui.items_view import InventoryView
from locus_inventory.ui.navigation import NAV_ITEMS, SideNav
from locus_inventory.ui.scan_view import ScanView
from locus_inventory.ui.settings_view import SettingsView
from locus_inventory.ui.theme import VS_BG

logger = logging.getLogger(__name__)

CLOSE_JOIN_TIMEOUT_SECONDS = 2.0


class InventoryApp:
    def __init__(self) -> None:
        try:
            from ctypes import windll
            windll.shcore.SetProcessDpiAwareness(1)
        except (ImportError, AttributeError):
            pass

        ctk.set_appearance_mode("dark")
        settings = app_config.settings

        self._root = ctk.CTk()
        self._root.title(settings.app_name)
        self._root.geometry("1280x760")
        self._root.minsize(1080, 640)
        self._root.configure(fg_color=VS_BG)

        self._root.grid_rowconfigure(0, weight=1)
        self._root.grid_columnconfigure(1, weight=1)

        self._database = Database(settings.database_path)
        self._inventory_service = InventoryService(self._database)
        self._inventory_service.initialize()

        self._nav = SideNav(self._root, items=NAV_ITEMS, on_select=self._show_view, title=settings.app_name)
        self._nav.grid(row=0, column=0, sticky="nsw")

        self._content = ctk.CTkFrame(self._root, corner_radius=0, fg_color=VS_BG)
        self._content.grid(row=0, column=1, sticky="nsew")
        self._content.grid_rowconfigure(0, weight=1)
        self._content.grid_columnconfigure(0, weight=1)

        self._inventory_view = InventoryView(
            self._content,
            self._inventory_service,
            warning_days=settings.calibration_warning_days,
        )
        self._settings_view = SettingsView(
            self._content,
            store=app_config.user_settings_store,
            on_settings_saved=self._handle_settings_saved,
        )
        self._scan_view = self._build_scan_view()
        self._views: dict[str, ctk.CTkFrame] = {
            "new_item": self._scan_view,
            "inventory": self._inventory_view,
            "settings": self._settings_view,
        }

        for view in self._views.values():
            view.grid(row=0, column=0, sticky="nsew")

        self._current_view = "new_item"
        self._show_view("new_item")
        self._nav.select("new_item")

        self._root.after(0, self._maximize_window)
        self._root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _build_scan_view(self) -> ScanView:
        settings = app_config.settings
        scan_config = settings.scan_config()
        try:
            engine = build_available_engine(settings.scan_engine)
        except EngineUnavailable as exc:
            logger.error("Cannot start without a decode engine: %s", exc)
            messagebox.showerror(
                title="Scanner unavailable",
                message=f"{exc}\n\nInstall zxing-cpp or pyzbar and restart the app.",
            )
            sys.exit(1)

        frame_source = OpenCVFrameSource(
            environment_index=settings.environment_camera_index,
            user_index=settings.user_camera_index,
            max_cameras=settings.max_camera_count,
            zoom_range=settings.zoom_range(),
        )
        decoder = build_decoder(settings.scan_mode, engine, scan_config)
        logger.info("Scanner uses the %s engine in %s mode", engine.name, settings.scan_mode)

        return ScanView(
            self._content,
            self._inventory_service,
            frame_source=frame_source,
            decoder=decoder,
            scan_config=scan_config,
            user_id=settings.user_id,
            on_item_saved=lambda _item_id: self._inventory_view.refresh(),
        )

    def _show_view(self, key: str) -> None:
        if key != "new_item":
            # Leaving the scanner releases the camera.
            self._scan_view.release_camera()
        for view in self._views.values():
            view.grid_remove()
        if key in self._views:
            self._current_view = key
            self._views[key].grid()
            if key == "inventory":
                self._inventory_view.refresh()
            elif key == "settings":
                self._settings_view.refresh()

    def _handle_settings_saved(self, _updated: dict[str, object]) -> None:
        previous_db_path = self._database.path

        app_config.refresh_settings_from_store()
        settings = app_config.settings

        if settings.database_path != previous_db_path:
            logger.info("Switching inventory database to %s", settings.database_path)
            self._database = Database(settings.database_path)
            self._inventory_service.use_database(self._database)

        self._inventory_view.set_warning_days(settings.calibration_warning_days)

        # Rebuilt so scanner changes apply on the next start.
        old_view = self._scan_view
        if not old_view.session.close(CLOSE_JOIN_TIMEOUT_SECONDS):
            logger.warning("Previous scanner is still releasing the camera")
        old_view.destroy()

        self._scan_view = self._build_scan_view()
        self._scan_view.grid(row=0, column=0, sticky="nsew")
        self._views["new_item"] = self._scan_view
        if self._current_view != "new_item":
            self._scan_view.grid_remove()

    def _on_close(self) -> None:
        self._scan_view.session.close(CLOSE_JOIN_TIMEOUT_SECONDS)
        self._root.destroy()

    def run(self) -> None:
        self._root.mainloop()

    def _maximize_window(self) -> None:
        try:
            if os.name == "nt":
                self._root.state("zoomed")
            else:
                self._root.attributes("-zoomed", True)
        except Exception:
            # Ignore platforms that don't support zoomed state
            pass
