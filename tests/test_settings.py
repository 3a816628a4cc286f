from __future__ import annotations

import json
from pathlib import Path

from locus_inventory.config.settings import load_settings
from locus_inventory.config.user_settings_store import UserSettingsStore
from locus_inventory.scanner.types import FacingMode, Symbology


def _store(tmp_path: Path, **data) -> UserSettingsStore:
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    payload = {"app_data_dir": str(tmp_path / "data"), **data}
    (home_dir / "user_settings.json").write_text(json.dumps(payload), encoding="utf-8")
    return UserSettingsStore(home_dir=home_dir)


def test_store_values_feed_scan_config(tmp_path: Path, monkeypatch) -> None:
    for name in ("SCAN_TICK_RATE", "CONFIDENCE_THRESHOLD", "PREFERRED_FACING", "SCAN_SYMBOLOGIES"):
        monkeypatch.delenv(name, raising=False)
    store = _store(tmp_path, scan_tick_rate=10, confidence_threshold=0.05, preferred_facing="user")

    settings = load_settings(store, tmp_path / "data")
    config = settings.scan_config()

    assert settings.database_path == tmp_path / "data" / "inventory.db"
    assert config.tick_rate == 10.0
    assert config.tick_interval == 0.1
    assert config.confidence_threshold == 0.05
    assert config.facing_mode is FacingMode.USER
    assert Symbology.QR_CODE in config.symbologies


def test_environment_overrides_store(tmp_path: Path, monkeypatch) -> None:
    store = _store(tmp_path, scan_tick_rate=10)
    monkeypatch.setenv("SCAN_TICK_RATE", "20")
    monkeypatch.setenv("SCAN_SYMBOLOGIES", "qr_code, ean_13")
    monkeypatch.setenv("LOCUS_USER_ID", "tech-07")
    monkeypatch.setenv("EXACT_FACING", "yes")

    settings = load_settings(store, tmp_path / "data")
    config = settings.scan_config()

    assert config.tick_rate == 20.0
    assert config.symbologies == frozenset({Symbology.QR_CODE, Symbology.EAN_13})
    assert config.exact_facing is True
    assert settings.user_id == "tech-07"


def test_tick_rate_is_bounded(tmp_path: Path, monkeypatch) -> None:
    store = _store(tmp_path)
    monkeypatch.setenv("SCAN_TICK_RATE", "120")

    config = load_settings(store, tmp_path / "data").scan_config()

    assert config.tick_interval == 1.0 / 30


def test_saved_store_values_reach_refreshed_settings(tmp_path: Path, monkeypatch) -> None:
    from locus_inventory.config import settings as settings_module

    for name in ("SCAN_MODE", "SCAN_ENGINE", "SCAN_TICK_RATE", "DATABASE_PATH", "LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    store = _store(tmp_path)
    monkeypatch.setattr(settings_module, "user_settings_store", store)
    monkeypatch.setattr(settings_module, "settings", settings_module.settings)
    monkeypatch.setattr(settings_module, "APP_DATA_DIR", settings_module.APP_DATA_DIR)

    store.update(scan_mode="single_shot", scan_engine="zbar", scan_tick_rate=6)
    settings_module.refresh_settings_from_store()

    refreshed = settings_module.settings
    assert refreshed.scan_mode == "single_shot"
    assert refreshed.scan_engine == "zbar"
    assert refreshed.scan_config().tick_rate == 6.0
    assert refreshed.database_path == tmp_path / "data" / "inventory.db"
