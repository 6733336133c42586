"""
Tracker State - Thread-safe record of which alerts have fired for which events.

Tracks, per event id, the set of alert kinds already delivered so that a
warning observed as due in several consecutive scans is only sent once.
State lives in memory for the lifetime of the process.
"""

import threading
from typing import Dict, Iterable, Set

from eventwatch.models import AlertKind


class AlertTracker:
    """Thread-safe dedup store: event id -> fired alert kinds."""

    def __init__(self):
        self._lock = threading.Lock()
        self._fired: Dict[str, Set[AlertKind]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._fired)

    def __contains__(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._fired

    def has_fired(self, event_id: str, kind: AlertKind) -> bool:
        """Check if this alert kind was already sent for the event."""
        with self._lock:
            return kind in self._fired.get(event_id, ())

    def mark_fired(self, event_id: str, kind: AlertKind) -> bool:
        """Record an alert as sent.

        Returns True if this is the first time the pair was recorded, so a
        caller can check-and-set in one step.
        """
        with self._lock:
            fired = self._fired.setdefault(event_id, set())
            if kind in fired:
                return False
            fired.add(kind)
            return True

    def fired_kinds(self, event_id: str) -> Set[AlertKind]:
        """Copy of the kinds fired for an event (empty if none)."""
        with self._lock:
            return set(self._fired.get(event_id, ()))

    def event_ids(self) -> Set[str]:
        with self._lock:
            return set(self._fired)

    def retain(self, keep_ids: Iterable[str]) -> Set[str]:
        """Drop every event not in keep_ids. Returns the dropped ids."""
        keep = set(keep_ids)
        with self._lock:
            dropped = {eid for eid in self._fired if eid not in keep}
            for eid in dropped:
                del self._fired[eid]
        return dropped

    def clear(self):
        with self._lock:
            self._fired.clear()
