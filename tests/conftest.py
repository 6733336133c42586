"""Shared fixtures: a fake calendar source and a recording sink."""
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from eventwatch.calendar_monitor import CalendarMonitor
from eventwatch.models import Event
from eventwatch.preferences import Preferences


NOW = datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc)


class FakeCalendarSource:
    """In-memory calendar source that matches events by start time."""

    def __init__(self, events=None, calendars=None):
        self.events: List[Event] = list(events or [])
        self.calendars = set(calendars) if calendars is not None else {"work"}
        self.queries = []

    def calendar_ids(self):
        return set(self.calendars)

    def list_events(self, start, end, calendar_ids):
        calendar_ids = set(calendar_ids)
        self.queries.append((start, end, calendar_ids))
        return [
            event for event in self.events
            if event.calendar_id in calendar_ids and start <= event.start <= end
        ]


class RecordingSink:
    def __init__(self):
        self.calls = []

    def __call__(self, event, descriptor):
        self.calls.append((event.id, descriptor.kind))


def make_event(event_id="evt-1", seconds_from_now=295, calendar_id="work", title="Standup", now=NOW):
    return Event(
        id=event_id,
        start=now + timedelta(seconds=seconds_from_now),
        title=title,
        calendar_id=calendar_id,
        location="Room 4",
    )


@pytest.fixture
def source():
    return FakeCalendarSource()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def preferences(tmp_path):
    return Preferences(config_file=tmp_path / "config.yaml", data={
        "warnings": [{"minutes_before": 5, "sound": "fire-alarm-bell", "sound_duration": 4.0}],
    })


@pytest.fixture
def monitor(source, preferences, sink):
    return CalendarMonitor(
        source,
        preferences,
        sink,
        dnd_query=lambda: False,
        clock=lambda: NOW,
        query_timeout=None,
    )
