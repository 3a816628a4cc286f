from __future__ import annotations

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from locus_inventory.config.user_settings_store import UserSettingsStore
from locus_inventory.scanner.types import FacingMode, ScanConfig, Symbology, ZoomRange

BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
APP_NAME = os.getenv("APP_NAME", "Locus Inventory")
DEFAULT_SYMBOLOGIES = "qr_code,code_128,code_39,ean_13,ean_8,upc_a,upc_e"
user_settings_store = UserSettingsStore()

APP_DATA_DIR = Path(user_settings_store.get("app_data_dir", str(DOCUMENTS_PATH / APP_NAME))).expanduser()
APP_DATA_DIR.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _default_user_id() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "local-user"


@dataclass(frozen=True)
class Settings:
    app_name: str = APP_NAME
    database_path: Path = field(default_factory=lambda: APP_DATA_DIR / "inventory.db")
    log_dir: Path = field(default_factory=lambda: APP_DATA_DIR / "logs")
    log_level: str = "INFO"
    user_id: str = "local-user"
    environment_camera_index: int = 0
    user_camera_index: int = 1
    max_camera_count: int = 3
    scan_engine: str = "zxing"
    scan_mode: str = "continuous"
    scan_tick_rate: float = 12.0
    confidence_threshold: float = 0.10
    scan_symbologies: tuple[str, ...] = tuple(DEFAULT_SYMBOLOGIES.split(","))
    preferred_facing: str = "environment"
    exact_facing: bool = False
    scan_beep: bool = True
    zoom_min: float = 1.0
    zoom_max: float = 5.0
    zoom_step: float = 0.5
    calibration_warning_days: int = 30

    def scan_config(self) -> ScanConfig:
        return ScanConfig(
            tick_rate=self.scan_tick_rate,
            confidence_threshold=self.confidence_threshold,
            symbologies=Symbology.parse_many(self.scan_symbologies),
            facing_mode=FacingMode.parse(self.preferred_facing),
            exact_facing=self.exact_facing,
            beep=self.scan_beep,
        )

    def zoom_range(self) -> ZoomRange:
        return ZoomRange(min=self.zoom_min, max=self.zoom_max, step=self.zoom_step)


def load_settings(store: UserSettingsStore, app_data_dir: Path) -> Settings:
    """Merge environment variables over the user store; the environment wins."""

    return Settings(
        app_name=APP_NAME,
        database_path=Path(os.getenv("DATABASE_PATH", str(app_data_dir / "inventory.db"))),
        log_dir=Path(os.getenv("LOG_DIR", str(app_data_dir / "logs"))),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        user_id=os.getenv("LOCUS_USER_ID") or _default_user_id(),
        environment_camera_index=int(os.getenv("ENVIRONMENT_CAMERA_INDEX", "0")),
        user_camera_index=int(os.getenv("USER_CAMERA_INDEX", "1")),
        max_camera_count=int(os.getenv("MAX_CAMERA_COUNT", "3")),
        scan_engine=os.getenv("SCAN_ENGINE", store.get("scan_engine", "zxing")),
        scan_mode=os.getenv("SCAN_MODE", store.get("scan_mode", "continuous")),
        scan_tick_rate=float(os.getenv("SCAN_TICK_RATE", store.get("scan_tick_rate", 12))),
        confidence_threshold=float(
            os.getenv("CONFIDENCE_THRESHOLD", store.get("confidence_threshold", 0.10))
        ),
        scan_symbologies=tuple(
            token.strip()
            for token in os.getenv("SCAN_SYMBOLOGIES", DEFAULT_SYMBOLOGIES).split(",")
            if token.strip()
        ),
        preferred_facing=os.getenv("PREFERRED_FACING", store.get("preferred_facing", "environment")),
        exact_facing=_env_bool("EXACT_FACING", False),
        scan_beep=_env_bool("SCAN_BEEP", bool(store.get("beep_enabled", True))),
        zoom_min=float(os.getenv("ZOOM_MIN", "1.0")),
        zoom_max=float(os.getenv("ZOOM_MAX", "5.0")),
        zoom_step=float(os.getenv("ZOOM_STEP", "0.5")),
        calibration_warning_days=int(
            os.getenv("CALIBRATION_WARNING_DAYS", store.get("calibration_warning_days", 30))
        ),
    )


settings = load_settings(user_settings_store, APP_DATA_DIR)


def refresh_settings_from_store() -> None:
    """Rebuild the settings object from the current user store values."""

    global settings, APP_DATA_DIR  # noqa: PLW0603 - module-level singletons

    user_settings_store.reload()

    app_data_dir = Path(user_settings_store.get("app_data_dir", str(DOCUMENTS_PATH / APP_NAME))).expanduser()
    app_data_dir.mkdir(parents=True, exist_ok=True)

    APP_DATA_DIR = app_data_dir
    settings = load_settings(user_settings_store, APP_DATA_DIR)
