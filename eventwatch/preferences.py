"""
Preferences - User settings for the alert engine, stored as YAML.

Configuration:
    EVENTWATCH_CONFIG - Path to the preferences file
                        (default: ~/.eventwatch/config.yaml)

File format:
    warnings:
      - minutes_before: 5
        sound: fire-alarm-bell
        sound_duration: 4.0
    alert_sound: fire-alarm-bell
    event_start_sound_duration: 4.0
    disabled_calendar_ids: [holidays]
    respect_do_not_disturb: false

Missing keys fall back to defaults. A missing or unreadable file is not an
error: the defaults are used and the file is written on the next save().
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml

from eventwatch.models import AlertWarning, default_warnings

logger = logging.getLogger("preferences")

DEFAULT_CONFIG_FILE = Path.home() / ".eventwatch" / "config.yaml"
CONFIG_FILE = Path(os.getenv("EVENTWATCH_CONFIG", str(DEFAULT_CONFIG_FILE)))

DEFAULT_ALERT_SOUND = "fire-alarm-bell"
DEFAULT_EVENT_START_SOUND_DURATION = 4.0


class Keys:
    WARNINGS = "warnings"
    EVENT_START_SOUND_DURATION = "event_start_sound_duration"
    ALERT_SOUND = "alert_sound"
    DISABLED_CALENDAR_IDS = "disabled_calendar_ids"
    RESPECT_DO_NOT_DISTURB = "respect_do_not_disturb"


class Preferences:
    """Thread-safe preference store backed by a YAML file."""

    def __init__(self, config_file: Optional[Path] = None, data: Optional[Dict[str, Any]] = None):
        self._lock = threading.Lock()
        self._config_file = Path(config_file) if config_file else CONFIG_FILE
        self._data: Dict[str, Any] = {}
        if data is not None:
            self._data = dict(data)
        else:
            self._load()

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _load(self):
        """Load preferences from disk."""
        if not self._config_file.exists():
            logger.info(f"No preferences file at {self._config_file}, using defaults")
            return
        try:
            with open(self._config_file, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Could not load preferences, using defaults: {e}")
            return
        if not isinstance(loaded, dict):
            logger.warning(f"Preferences file {self._config_file} is not a mapping, using defaults")
            return
        self._data = loaded

    def save(self):
        """Atomically save preferences to disk via temp file."""
        with self._lock:
            self._config_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = self._config_file.with_suffix(".tmp")
            with open(tmp_file, "w") as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=True)
            os.replace(str(tmp_file), str(self._config_file))

    # --- Warnings ---

    @property
    def warnings(self) -> List[AlertWarning]:
        """Configured warnings, or the defaults if none are stored or they are invalid."""
        with self._lock:
            raw = self._data.get(Keys.WARNINGS)
        if raw is None:
            return default_warnings()
        if not isinstance(raw, list):
            logger.warning(f"Invalid warnings setting {raw!r}, using defaults")
            return default_warnings()
        try:
            return [AlertWarning.from_dict(item) for item in raw]
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid warning in preferences, using defaults: {e}")
            return default_warnings()

    @warnings.setter
    def warnings(self, value: Iterable[AlertWarning]):
        with self._lock:
            self._data[Keys.WARNINGS] = [w.to_dict() for w in value]

    # --- Sounds ---

    @property
    def event_start_sound_duration(self) -> float:
        """Sound duration in seconds for the event start alert (0 = no sound)."""
        with self._lock:
            value = self._data.get(Keys.EVENT_START_SOUND_DURATION, DEFAULT_EVENT_START_SOUND_DURATION)
        try:
            return float(value)
        except (TypeError, ValueError):
            return DEFAULT_EVENT_START_SOUND_DURATION

    @event_start_sound_duration.setter
    def event_start_sound_duration(self, value: float):
        with self._lock:
            self._data[Keys.EVENT_START_SOUND_DURATION] = float(value)

    @property
    def alert_sound(self) -> str:
        """Sound name for the event start alert; empty string means no audio."""
        with self._lock:
            value = self._data.get(Keys.ALERT_SOUND, DEFAULT_ALERT_SOUND)
        return DEFAULT_ALERT_SOUND if value is None else str(value)

    @alert_sound.setter
    def alert_sound(self, value: str):
        with self._lock:
            self._data[Keys.ALERT_SOUND] = value

    # --- Do Not Disturb ---

    @property
    def respect_do_not_disturb(self) -> bool:
        with self._lock:
            return bool(self._data.get(Keys.RESPECT_DO_NOT_DISTURB, False))

    @respect_do_not_disturb.setter
    def respect_do_not_disturb(self, value: bool):
        with self._lock:
            self._data[Keys.RESPECT_DO_NOT_DISTURB] = bool(value)

    # --- Calendar filtering ---

    @property
    def disabled_calendar_ids(self) -> List[str]:
        """Calendar identifiers that are not monitored."""
        with self._lock:
            value = self._data.get(Keys.DISABLED_CALENDAR_IDS) or []
        return [str(cid) for cid in value]

    @disabled_calendar_ids.setter
    def disabled_calendar_ids(self, value: Iterable[str]):
        with self._lock:
            self._data[Keys.DISABLED_CALENDAR_IDS] = list(value)

    def is_calendar_enabled(self, calendar_id: str) -> bool:
        return calendar_id not in self.disabled_calendar_ids

    def set_calendar(self, calendar_id: str, enabled: bool):
        """Enable or disable a calendar."""
        disabled = self.disabled_calendar_ids
        if enabled:
            disabled = [cid for cid in disabled if cid != calendar_id]
        elif calendar_id not in disabled:
            disabled.append(calendar_id)
        self.disabled_calendar_ids = disabled

    def enabled_calendars(self, all_calendar_ids: Iterable[str]) -> Set[str]:
        """All known calendars minus the disabled ones."""
        disabled = set(self.disabled_calendar_ids)
        return {cid for cid in all_calendar_ids if cid not in disabled}

    def cleanup_deleted_calendars(self, current_calendar_ids: Iterable[str]):
        """Forget disabled ids for calendars that no longer exist."""
        current = set(current_calendar_ids)
        self.disabled_calendar_ids = [cid for cid in self.disabled_calendar_ids if cid in current]
