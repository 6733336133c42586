"""Data models shared by the scan engine, preferences and sinks."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass
class Event:
    """A single calendar event occurrence, as returned by a calendar source."""
    id: str
    start: datetime
    title: str = ""
    calendar_id: str = ""
    location: str = ""
    url: str = ""
    notes: str = ""
    end: Optional[datetime] = None


@dataclass
class AlertWarning:
    """A configurable warning that fires before an event starts."""
    minutes_before: int
    sound: str = "fire-alarm-bell"
    sound_duration: float = 4.0

    def to_dict(self) -> dict:
        return {
            "minutes_before": self.minutes_before,
            "sound": self.sound,
            "sound_duration": self.sound_duration,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlertWarning":
        """Build a warning from a config mapping. Raises ValueError on bad input."""
        if not isinstance(data, dict):
            raise ValueError(f"warning must be a mapping, got {type(data).__name__}")
        minutes = data.get("minutes_before")
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise ValueError(f"minutes_before must be a positive integer, got {minutes!r}")
        return cls(
            minutes_before=minutes,
            sound=str(data.get("sound", "fire-alarm-bell") or ""),
            sound_duration=float(data.get("sound_duration", 4.0)),
        )


def default_warnings() -> List[AlertWarning]:
    """Five and one minute warnings, largest offset first."""
    return [
        AlertWarning(minutes_before=5, sound="fire-alarm-bell", sound_duration=4.0),
        AlertWarning(minutes_before=1, sound="fire-alarm-bell", sound_duration=4.0),
    ]


class AlertType(Enum):
    WARNING = "warning"
    EVENT_STARTING = "event_starting"


@dataclass(frozen=True)
class AlertKind:
    """Dedup key for a fired alert.

    Warnings are identified by their offset only, so editing a warning's
    sound does not make it fire again but editing its minutes does.
    """
    type: AlertType
    minutes: int = 0

    @classmethod
    def warning(cls, minutes: int) -> "AlertKind":
        return cls(AlertType.WARNING, minutes)

    @classmethod
    def event_starting(cls) -> "AlertKind":
        return cls(AlertType.EVENT_STARTING, 0)

    @property
    def is_warning(self) -> bool:
        return self.type is AlertType.WARNING

    def __str__(self) -> str:
        if self.is_warning:
            return f"warning({self.minutes})"
        return "event_starting"


@dataclass(frozen=True)
class AlertDescriptor:
    """What the notification sink receives alongside the event."""
    kind: AlertKind
    sound: str = ""
    sound_duration: float = 0.0

    @property
    def minutes_before(self) -> int:
        return self.kind.minutes if self.kind.is_warning else 0

    @property
    def title(self) -> str:
        if not self.kind.is_warning:
            return "Starting now"
        if self.kind.minutes == 1:
            return "Starts in 1 minute"
        return f"Starts in {self.kind.minutes} minutes"
