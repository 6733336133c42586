"""
Calendar Monitor - Decides which alerts are due and fires each one once.

Called periodically by the scheduler. Each scan:
  1. Skips everything if Do Not Disturb should be respected and is on
  2. Resolves the enabled calendars (clearing state if there are none)
  3. Fetches events starting in the next LOOK_AHEAD
  4. Fires every warning / event-start alert whose window contains "now"
     and that has not fired for that event yet
  5. Forgets events that are no longer in the look-ahead or trailing window

A warning for N minutes is due while N*60 - FIRING_WINDOW < seconds until
start <= N*60. The scheduler ticks at a fixed rate of POLL_INTERVAL, equal
to FIRING_WINDOW, so exactly one scan lands in each window under normal
timing. A window missed entirely (e.g. while the machine sleeps) is never
caught up.

Configuration:
    EVENTWATCH_QUERY_TIMEOUT - Seconds to wait on a calendar query (default: 10)
"""

import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set, Tuple

from eventwatch.calendar_source import LOCAL_TZ, CalendarSource
from eventwatch.dnd import is_do_not_disturb_active
from eventwatch.models import AlertDescriptor, AlertKind, Event
from eventwatch.notify_channels import AlertSink
from eventwatch.preferences import Preferences
from eventwatch.tracker_state import AlertTracker

logger = logging.getLogger("calendar_monitor")

POLL_INTERVAL = 30  # seconds
LOOK_AHEAD = timedelta(hours=3)
FIRING_WINDOW = 30  # seconds
TRAILING_WINDOW = timedelta(hours=1)

QUERY_TIMEOUT = float(os.getenv("EVENTWATCH_QUERY_TIMEOUT", "10"))

FiredAlert = Tuple[Event, AlertDescriptor]


def is_warning_due(seconds_until_start: float, minutes_before: int) -> bool:
    threshold = minutes_before * 60
    return threshold - FIRING_WINDOW < seconds_until_start <= threshold


def is_event_start_due(seconds_until_start: float) -> bool:
    return -FIRING_WINDOW < seconds_until_start <= 0


class CalendarMonitor:
    """Scan engine: polls a calendar source and fires due alerts exactly once."""

    def __init__(
        self,
        source: CalendarSource,
        preferences: Preferences,
        sink: AlertSink,
        tracker: Optional[AlertTracker] = None,
        dnd_query: Optional[Callable[[], bool]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        query_timeout: Optional[float] = QUERY_TIMEOUT,
    ):
        self.source = source
        self.preferences = preferences
        self.sink = sink
        self.tracker = tracker if tracker is not None else AlertTracker()
        self.dnd_query = dnd_query or is_do_not_disturb_active
        self.clock = clock or (lambda: datetime.now(LOCAL_TZ))
        self.query_timeout = query_timeout
        self._scan_lock = threading.Lock()

    # ---- Collaborator calls ----

    def _call_with_timeout(self, fn, *args):
        """Run a source call, giving up after query_timeout seconds."""
        if not self.query_timeout:
            return fn(*args)

        outcome = {}

        def target():
            try:
                outcome["value"] = fn(*args)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=target, name="calendar-query", daemon=True)
        worker.start()
        worker.join(self.query_timeout)
        if worker.is_alive():
            raise TimeoutError(f"calendar query did not finish within {self.query_timeout}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]

    def _dnd_active(self) -> bool:
        try:
            return bool(self.dnd_query())
        except Exception as e:
            logger.warning(f"Do Not Disturb check failed, assuming off: {e}")
            return False

    def _enabled_calendars(self) -> Optional[Set[str]]:
        """Enabled calendar ids, or None if the source could not list them."""
        try:
            all_ids = self._call_with_timeout(self.source.calendar_ids)
        except Exception as e:
            logger.error(f"Failed to list calendars: {e}")
            return None
        return self.preferences.enabled_calendars(all_ids)

    def _query(self, start: datetime, end: datetime, calendars: Set[str]) -> Optional[List[Event]]:
        """Events from the source for [start, end], or None if the query failed."""
        try:
            return list(self._call_with_timeout(self.source.list_events, start, end, calendars))
        except Exception as e:
            logger.error(f"Calendar query {start.isoformat()} - {end.isoformat()} failed: {e}")
            return None

    # ---- Scan ----

    def _descriptor_for_warning(self, kind: AlertKind, warning) -> AlertDescriptor:
        return AlertDescriptor(kind=kind, sound=warning.sound, sound_duration=warning.sound_duration)

    def _descriptor_for_start(self) -> AlertDescriptor:
        return AlertDescriptor(
            kind=AlertKind.event_starting(),
            sound=self.preferences.alert_sound,
            sound_duration=self.preferences.event_start_sound_duration,
        )

    def _fire(self, event: Event, descriptor: AlertDescriptor, fired: List[FiredAlert]):
        if not self.tracker.mark_fired(event.id, descriptor.kind):
            return
        logger.info(f"Alert {descriptor.kind} for {event.title!r} ({event.id}) starting {event.start.isoformat()}")
        fired.append((event, descriptor))
        self.sink(event, descriptor)

    def scan(self, now: Optional[datetime] = None) -> List[FiredAlert]:
        """Run one scan. Returns the alerts fired during it."""
        if not self._scan_lock.acquire(blocking=False):
            logger.warning("Previous scan still running, skipping this one")
            return []
        try:
            return self._scan(now or self.clock())
        finally:
            self._scan_lock.release()

    def _scan(self, now: datetime) -> List[FiredAlert]:
        if self.preferences.respect_do_not_disturb and self._dnd_active():
            logger.info("Do Not Disturb is on, skipping scan")
            return []

        calendars = self._enabled_calendars()
        if calendars is None:
            return []
        if not calendars:
            logger.debug("No enabled calendars, clearing alert state")
            self.tracker.clear()
            return []

        # Reach back one firing window so events that just started are still
        # fetched from sources that match on start time.
        window_start = now - timedelta(seconds=FIRING_WINDOW)
        upcoming = self._query(window_start, now + LOOK_AHEAD, calendars)
        if upcoming is None:
            return []
        warnings = self.preferences.warnings
        fired: List[FiredAlert] = []

        for event in upcoming:
            if not event.id:
                continue

            seconds_until_start = (event.start - now).total_seconds()

            for warning in warnings:
                if is_warning_due(seconds_until_start, warning.minutes_before):
                    kind = AlertKind.warning(warning.minutes_before)
                    self._fire(event, self._descriptor_for_warning(kind, warning), fired)

            if is_event_start_due(seconds_until_start):
                self._fire(event, self._descriptor_for_start(), fired)

        self._prune(now, calendars, {event.id for event in upcoming if event.id})
        return fired

    def _prune(self, now: datetime, calendars: Set[str], upcoming_ids: Set[str]):
        """Forget events no longer visible in the look-ahead or trailing window."""
        recent = self._query(now - TRAILING_WINDOW, now, calendars)
        if recent is None:
            logger.warning("Skipping alert state cleanup after failed query")
            return

        keep = upcoming_ids | {event.id for event in recent if event.id}
        dropped = self.tracker.retain(keep)
        if dropped:
            logger.debug(f"Forgot {len(dropped)} past event(s)")
