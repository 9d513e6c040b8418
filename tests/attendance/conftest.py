from __future__ import annotations

from datetime import datetime
from typing import Optional

import pytest

from site_attendance.attendance.model import AttendanceEvent, DailyMark, Roster, RosterEntry


class InMemoryRoster:
    def __init__(self, sites: dict[str, list[tuple[str, str]]]):
        self._sites = sites
        self.marks: list[DailyMark] = []
        self.events: list[AttendanceEvent] = []
        self.uploaded_at: dict[str, datetime] = {}

    def get_roster(self, site_id: str) -> Optional[Roster]:
        workers = self._sites.get(site_id)
        if workers is None:
            return None
        return Roster(
            site_id=site_id,
            entries=tuple(
                RosterEntry(subject_id=wid, name=name, marks=tuple(self.marks_for(wid)))
                for wid, name in workers
            ),
        )

    def marks_for(self, subject_id: str):
        return [m for m in self.marks if m.subject_id == subject_id]

    def events_for(self, subject_id: str, *, start=None, end=None, limit=None):
        items = [
            e for e in self.events
            if e.subject_id == subject_id
            and (start is None or e.day >= start)
            and (end is None or e.day <= end)
        ]
        items.sort(key=lambda e: e.captured_at, reverse=True)
        return items[:limit] if limit else items

    def append_mark(self, mark: DailyMark) -> int:
        self.marks.append(mark)
        return len(self.marks)

    def append_event(self, event: AttendanceEvent) -> int:
        self.events.append(event)
        self.uploaded_at[event.event_id] = event.captured_at
        return len(self.events)

    def purge_photos_before(self, cutoff: datetime) -> int:
        purged = 0
        for i, e in enumerate(self.events):
            if e.photo is not None and self.uploaded_at[e.event_id] < cutoff:
                self.events[i] = e.without_photo()
                purged += 1
        return purged


@pytest.fixture
def repo():
    return InMemoryRoster({"site-1": [("w1", "An"), ("w2", "Binh")]})
