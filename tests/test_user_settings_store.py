from __future__ import annotations

import json
from pathlib import Path

import pytest

from locus_inventory.config.user_settings_store import DEFAULT_SETTINGS, InvalidSettingError, UserSettingsStore


def _store(tmp_path: Path, **data) -> UserSettingsStore:
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    payload = {"app_data_dir": str(tmp_path / "data"), **data}
    (home_dir / "user_settings.json").write_text(json.dumps(payload), encoding="utf-8")
    return UserSettingsStore(home_dir=home_dir)


def test_defaults_fill_missing_keys(tmp_path: Path) -> None:
    store = _store(tmp_path)

    assert store.get("scan_engine") == DEFAULT_SETTINGS["scan_engine"]
    assert store.get("scan_mode") == "continuous"
    assert store.get("scan_tick_rate") == 12.0
    assert store.app_data_dir == tmp_path / "data"


def test_update_casts_and_persists(tmp_path: Path) -> None:
    store = _store(tmp_path)

    store.update(scan_tick_rate="15", confidence_threshold="0.08", beep_enabled="off", unknown_key="ignored")

    saved = json.loads((tmp_path / "data" / "user_settings.json").read_text(encoding="utf-8"))
    assert saved["scan_tick_rate"] == 15.0
    assert saved["confidence_threshold"] == 0.08
    assert saved["beep_enabled"] is False
    assert "unknown_key" not in saved

    reloaded = UserSettingsStore(home_dir=tmp_path / "home")
    assert reloaded.get("scan_tick_rate") == 15.0


def test_invalid_update_is_rejected_without_writing(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(InvalidSettingError) as excinfo:
        store.update(scan_tick_rate="90", scan_mode="burst", scan_engine="zbar")

    assert len(excinfo.value.errors) == 2
    assert "Scans per second" in str(excinfo.value)
    assert store.get("scan_engine") == "zxing"
    assert not (tmp_path / "data" / "user_settings.json").exists()


def test_restore_defaults_keeps_data_location(tmp_path: Path) -> None:
    store = _store(tmp_path, scan_engine="zbar", scan_mode="single_shot")

    values = store.restore_defaults()

    assert values["scan_engine"] == "zxing"
    assert values["scan_mode"] == "continuous"
    assert values["app_data_dir"] == str(tmp_path / "data")


def test_moving_app_data_updates_pointer(tmp_path: Path) -> None:
    store = _store(tmp_path)

    store.update(app_data_dir=str(tmp_path / "elsewhere"), scan_mode="single_shot")

    pointer = json.loads((tmp_path / "home" / "user_settings.json").read_text(encoding="utf-8"))
    assert pointer == {"app_data_dir": str(tmp_path / "elsewhere")}
    reloaded = UserSettingsStore(home_dir=tmp_path / "home")
    assert reloaded.get("scan_mode") == "single_shot"


def test_invalid_numbers_fall_back_to_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path, calibration_warning_days="soon", preferred_facing="sideways")

    assert store.get("calibration_warning_days") == DEFAULT_SETTINGS["calibration_warning_days"]
    assert store.get("preferred_facing") == "environment"


def test_corrupt_settings_file_is_ignored(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "user_settings.json").write_text("{not json", encoding="utf-8")

    store = _store(tmp_path)

    assert store.get("preferred_facing") == "environment"
