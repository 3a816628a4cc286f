from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = os.getenv("APP_NAME", "Locus Inventory")
DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
DEFAULT_HOME_DIR = DOCUMENTS_PATH / DEFAULT_APP_NAME
DEFAULT_SETTINGS_FILENAME = "user_settings.json"

SCAN_ENGINES = ("zxing", "zbar")
SCAN_MODES = ("continuous", "single_shot")
FACING_MODES = ("environment", "user")

DEFAULT_SETTINGS: Dict[str, Any] = {
	"scan_engine": "zxing",
	"scan_mode": "continuous",
	"scan_tick_rate": 12.0,
	"confidence_threshold": 0.10,
	"preferred_facing": "environment",
	"beep_enabled": True,
	"calibration_warning_days": 30,
	"app_data_dir": str(DEFAULT_HOME_DIR),
}


class InvalidSettingError(ValueError):
	"""Raised when one or more submitted settings fail validation."""

	def __init__(self, errors: list[str]) -> None:
		super().__init__("\n".join(errors))
		self.errors = errors


def _choice(options: tuple[str, ...]) -> Callable[[Any], str]:
	def coerce(value: Any) -> str:
		text = str(value).strip().lower()
		if text not in options:
			raise ValueError(f"must be one of {', '.join(options)}")
		return text

	return coerce


def _number(kind: type, low: float, high: float | None = None) -> Callable[[Any], Any]:
	def coerce(value: Any) -> Any:
		try:
			number = kind(str(value).strip()) if isinstance(value, str) else kind(value)
		except (TypeError, ValueError):
			raise ValueError("must be a number") from None
		if number < low or (high is not None and number > high):
			bounds = f"between {low:g} and {high:g}" if high is not None else f"at least {low:g}"
			raise ValueError(f"must be {bounds}")
		return number

	return coerce


def _flag(value: Any) -> bool:
	if isinstance(value, bool):
		return value
	text = str(value).strip().lower()
	if text in {"1", "true", "yes", "on"}:
		return True
	if text in {"0", "false", "no", "off"}:
		return False
	raise ValueError("must be true or false")


def _directory(value: Any) -> str:
	text = str(value or "").strip()
	if not text:
		raise ValueError("is required")
	return str(Path(text).expanduser())


_COERCERS: Dict[str, Callable[[Any], Any]] = {
	"scan_engine": _choice(SCAN_ENGINES),
	"scan_mode": _choice(SCAN_MODES),
	"scan_tick_rate": _number(float, 1, 30),
	"confidence_threshold": _number(float, 0, 1),
	"preferred_facing": _choice(FACING_MODES),
	"beep_enabled": _flag,
	"calibration_warning_days": _number(int, 0),
	"app_data_dir": _directory,
}

FIELD_LABELS: Dict[str, str] = {
	"scan_engine": "Decode engine",
	"scan_mode": "Scan mode",
	"scan_tick_rate": "Scans per second",
	"confidence_threshold": "Confidence threshold",
	"preferred_facing": "Camera",
	"beep_enabled": "Beep on capture",
	"calibration_warning_days": "Calibration warning days",
	"app_data_dir": "App data directory",
}


@dataclass
class UserSettingsStore:
	"""Scanner and inventory preferences the user can edit, kept as JSON.

	A pointer file in ``home_dir`` records where the app data lives; the
	full settings file sits in that data directory next to the database.
	Invalid values read from disk fall back to defaults, invalid values
	passed to :meth:`update` are rejected.
	"""

	home_dir: Path = field(default_factory=lambda: DEFAULT_HOME_DIR)
	filename: str = DEFAULT_SETTINGS_FILENAME
	_values: Dict[str, Any] = field(init=False, default_factory=dict)
	app_data_dir: Path = field(init=False)

	def __post_init__(self) -> None:
		self.home_dir.mkdir(parents=True, exist_ok=True)
		self.reload()

	@property
	def pointer_file(self) -> Path:
		return self.home_dir / self.filename

	@property
	def settings_file(self) -> Path:
		return self.app_data_dir / self.filename

	@property
	def data(self) -> Dict[str, Any]:
		return dict(self._values)

	def get(self, key: str, default: Any = None) -> Any:
		return self._values.get(key, default)

	def reload(self) -> None:
		pointer = self._read(self.pointer_file)
		self.app_data_dir = Path(pointer.get("app_data_dir") or DEFAULT_SETTINGS["app_data_dir"]).expanduser()
		self.app_data_dir.mkdir(parents=True, exist_ok=True)

		merged = {**DEFAULT_SETTINGS, **pointer, **self._read(self.settings_file)}
		values: Dict[str, Any] = {}
		for key, default in DEFAULT_SETTINGS.items():
			try:
				values[key] = _COERCERS[key](merged[key])
			except ValueError:
				logger.warning("Ignoring invalid %s value %r", key, merged[key])
				values[key] = default
		values["app_data_dir"] = str(self.app_data_dir)
		self._values = values

	def update(self, **changes: Any) -> Dict[str, Any]:
		"""Validate ``changes``, persist them and return the new values.

		Unknown keys are ignored. Nothing is written when any value is
		invalid; :class:`InvalidSettingError` lists every problem.
		"""

		values = dict(self._values)
		errors: list[str] = []
		for key, raw in changes.items():
			coerce = _COERCERS.get(key)
			if coerce is None:
				continue
			try:
				values[key] = coerce(raw)
			except ValueError as exc:
				errors.append(f"{FIELD_LABELS[key]} {exc}.")
		if errors:
			raise InvalidSettingError(errors)

		app_data_dir = Path(values["app_data_dir"])
		try:
			app_data_dir.mkdir(parents=True, exist_ok=True)
		except OSError as exc:
			raise InvalidSettingError([f"Cannot use {app_data_dir} as the app data directory: {exc}"]) from exc

		self.app_data_dir = app_data_dir
		self._values = values
		self._write(self.pointer_file, {"app_data_dir": values["app_data_dir"]})
		self._write(self.settings_file, values)
		logger.info("Saved user settings to %s", self.settings_file)
		return dict(values)

	def restore_defaults(self) -> Dict[str, Any]:
		"""Reset every preference except the data location."""

		defaults = {key: value for key, value in DEFAULT_SETTINGS.items() if key != "app_data_dir"}
		return self.update(**defaults)

	@staticmethod
	def _write(path: Path, payload: Dict[str, Any]) -> None:
		with path.open("w", encoding="utf-8") as handle:
			json.dump(payload, handle, indent=2)

	@staticmethod
	def _read(path: Path) -> Dict[str, Any]:
		try:
			if path.exists():
				with path.open("r", encoding="utf-8") as handle:
					payload = json.load(handle)
				if isinstance(payload, dict):
					return payload
		except (OSError, json.JSONDecodeError):
			logger.warning("Could not read settings file %s", path)
		return {}
