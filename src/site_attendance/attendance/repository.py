from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from .model import AttendanceEvent, DailyMark, Roster


class RosterRepository(Protocol):
    """Read/append access to a site's roster records.

    Marks and events are append-only; nothing here updates or deletes a
    record, except the photo retention purge.
    """

    def get_roster(self, site_id: str) -> Optional[Roster]:
        """Roster with every subject's marks loaded (events are fetched per subject)."""
        raise NotImplementedError

    def marks_for(self, subject_id: str) -> Sequence[DailyMark]:
        raise NotImplementedError

    def events_for(
        self,
        subject_id: str,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> Sequence[AttendanceEvent]:
        """Events newest first, optionally bounded by calendar day (inclusive)."""
        raise NotImplementedError

    def append_mark(self, mark: DailyMark) -> int:
        raise NotImplementedError

    def append_event(self, event: AttendanceEvent) -> int:
        raise NotImplementedError

    def purge_photos_before(self, cutoff: datetime) -> int:
        raise NotImplementedError
