from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from ..common.datetime_utils import month_days
from ..core.enums import DayClass, EventKind
from .model import AttendanceEvent


@dataclass(frozen=True)
class DayClassification:
    has_check_in: bool
    has_check_out: bool
    day_class: DayClass


def _classify(kinds: set[EventKind]) -> DayClassification:
    has_in = EventKind.CHECK_IN in kinds
    has_out = EventKind.CHECK_OUT in kinds

    if has_in and has_out:
        day_class = DayClass.FULL
    elif has_in:
        day_class = DayClass.PARTIAL
    elif has_out:
        # Check-out with no check-in is surfaced, not hidden.
        day_class = DayClass.ANOMALOUS
    else:
        day_class = DayClass.EMPTY
    return DayClassification(has_check_in=has_in, has_check_out=has_out, day_class=day_class)


class CalendarClassifier:
    """Buckets a subject's events by calendar day for the calendar view."""

    def group_by_date(self, events: Iterable[AttendanceEvent]) -> dict[date, list[AttendanceEvent]]:
        groups: dict[date, list[AttendanceEvent]] = defaultdict(list)
        for event in events:
            groups[event.day].append(event)

        for day_events in groups.values():
            day_events.sort(key=lambda e: (e.captured_at, e.event_id))
        return dict(sorted(groups.items()))

    def classify_day(self, events: Iterable[AttendanceEvent], on: date) -> DayClassification:
        return _classify({e.kind for e in events if e.day == on})

    def classify_month(self, events: Iterable[AttendanceEvent], year: int, month: int) -> dict[date, DayClassification]:
        kinds_by_day: dict[date, set[EventKind]] = defaultdict(set)
        for event in events:
            kinds_by_day[event.day].add(event.kind)
        return {day: _classify(kinds_by_day.get(day, set())) for day in month_days(year, month)}
