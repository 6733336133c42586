"""
Calendar sources - Where the scan engine gets its events from.

Any object with list_events() and calendar_ids() can be used as a source.
ICSDirectorySource reads a directory of .ics files, one calendar per file
(the file stem is the calendar id), and expands recurring events.

Configuration:
    EVENTWATCH_TIMEZONE      - Zone for floating (timezone-less) times (default: "UTC")
    EVENTWATCH_CALENDARS_DIR - Directory of .ics files used by the CLI
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple, runtime_checkable
from zoneinfo import ZoneInfo

import recurring_ical_events
from icalendar import Calendar

from eventwatch.models import Event

logger = logging.getLogger("calendar_source")

LOCAL_TZ = ZoneInfo(os.getenv("EVENTWATCH_TIMEZONE", "UTC"))
DEFAULT_CALENDARS_DIR = Path.home() / ".eventwatch" / "calendars"
CALENDARS_DIR = Path(os.getenv("EVENTWATCH_CALENDARS_DIR", str(DEFAULT_CALENDARS_DIR)))


class CalendarSourceError(Exception):
    """Raised when a calendar source cannot be read at all."""


@runtime_checkable
class CalendarSource(Protocol):
    """Protocol every calendar backend must satisfy."""

    def calendar_ids(self) -> Set[str]: ...

    def list_events(self, start: datetime, end: datetime, calendar_ids: Iterable[str]) -> List[Event]: ...


def _to_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=LOCAL_TZ)
    return value.astimezone(LOCAL_TZ)


def _text(component, name: str) -> str:
    value = component.get(name)
    return str(value) if value is not None else ""


def _recurring_uids(calendar: Calendar) -> Set[str]:
    """UIDs of series in the file: masters with RRULE/RDATE or any override."""
    uids = set()
    for component in calendar.walk("VEVENT"):
        if any(component.get(prop) is not None for prop in ("RRULE", "RDATE", "RECURRENCE-ID")):
            uid = _text(component, "UID")
            if uid:
                uids.add(uid)
    return uids


def _occurrence_id(component, start: datetime, recurring_uids: Set[str]) -> str:
    """Stable id for one occurrence.

    Single events keep their UID. Occurrences of a recurring series get the
    UID plus the occurrence's original start so each occurrence is tracked
    separately. Whether an event recurs is decided from the source file,
    since expanded occurrences may carry a RECURRENCE-ID either way.
    """
    uid = _text(component, "UID")
    if not uid or uid not in recurring_uids:
        return uid
    recurrence_id = component.get("RECURRENCE-ID")
    if recurrence_id is not None:
        original = recurrence_id.dt
        if isinstance(original, datetime):
            original = _to_local(original)
        return f"{uid}/{original.isoformat()}"
    return f"{uid}/{start.isoformat()}"


class ICSDirectorySource:
    """Calendar source backed by a directory of .ics files."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else CALENDARS_DIR
        # path -> (mtime, parsed calendar)
        self._cache: Dict[Path, Tuple[float, Calendar]] = {}

    def _files(self) -> Dict[str, Path]:
        if not self.directory.is_dir():
            raise CalendarSourceError(f"Calendar directory not found: {self.directory}")
        return {path.stem: path for path in sorted(self.directory.glob("*.ics")) if path.is_file()}

    def _load(self, path: Path) -> Optional[Calendar]:
        """Parse an .ics file, reusing the cached copy if it has not changed."""
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.warning(f"Cannot stat calendar file {path}: {e}")
            return None

        cached = self._cache.get(path)
        if cached and cached[0] == mtime:
            return cached[1]

        try:
            calendar = Calendar.from_ical(path.read_bytes())
        except Exception as e:
            logger.warning(f"Skipping unreadable calendar file {path.name}: {e}")
            self._cache.pop(path, None)
            return None

        self._cache[path] = (mtime, calendar)
        logger.debug(f"Loaded calendar {path.stem} from {path}")
        return calendar

    def calendar_ids(self) -> Set[str]:
        return set(self._files())

    def list_events(self, start: datetime, end: datetime, calendar_ids: Iterable[str]) -> List[Event]:
        """Timed events that start or are in progress within [start, end].

        Only the given calendars are read. All-day events are skipped.
        """
        wanted = set(calendar_ids)
        events: List[Event] = []

        for calendar_id, path in self._files().items():
            if calendar_id not in wanted:
                continue
            calendar = self._load(path)
            if calendar is None:
                continue
            recurring_uids = _recurring_uids(calendar)

            for component in recurring_ical_events.of(calendar).between(start, end):
                dtstart = component.get("DTSTART")
                if dtstart is None:
                    continue
                start_dt = dtstart.dt
                if not isinstance(start_dt, datetime):
                    # All-day event - skip for alerts
                    continue
                start_dt = _to_local(start_dt)

                end_dt = None
                dtend = component.get("DTEND")
                if dtend is not None and isinstance(dtend.dt, datetime):
                    end_dt = _to_local(dtend.dt)

                events.append(
                    Event(
                        id=_occurrence_id(component, start_dt, recurring_uids),
                        start=start_dt,
                        title=_text(component, "SUMMARY") or "(No title)",
                        calendar_id=calendar_id,
                        location=_text(component, "LOCATION"),
                        url=_text(component, "URL"),
                        notes=_text(component, "DESCRIPTION"),
                        end=end_dt,
                    )
                )

        events.sort(key=lambda e: e.start)
        return events
