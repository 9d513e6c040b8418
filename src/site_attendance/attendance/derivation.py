from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import iter_days
from ..core.enums import DayStatus
from ..core.exceptions import ValidationError
from .model import DailyMark, Roster


@dataclass(frozen=True)
class RosterSummary:
    present: int
    absent: int
    not_marked: int
    total: int
    percentage: int


@dataclass(frozen=True)
class RosterDayRow:
    """Read-model phục vụ báo cáo điểm danh theo ngày."""

    subject_id: str
    name: str
    role: Optional[str]
    status: DayStatus
    marked_at: Optional[datetime]


def _creation_key(mark: DailyMark):
    # Total order over marks so the winner never depends on input order.
    return (
        mark.created_at,
        mark.mark_id if mark.mark_id is not None else -1,
        mark.status.value,
    )


def _percentage(part: int, total: int) -> int:
    """round(part / total * 100), half up, in integer arithmetic."""
    if total <= 0:
        return 0
    return (part * 200 + total) // (2 * total)


class StatusDerivationEngine:
    """Single source of truth for "what is this worker's status on day D".

    Every dashboard goes through this class instead of sorting marks inline.
    Marks are append-only; the most recently *created* mark for the day wins.
    """

    def latest_mark(self, marks: Iterable[DailyMark], on: date) -> Optional[DailyMark]:
        same_day = [m for m in marks if m.date == on]
        if not same_day:
            return None
        return max(same_day, key=_creation_key)

    def derive_status(self, marks: Iterable[DailyMark], on: date) -> DayStatus:
        mark = self.latest_mark(marks, on)
        if mark is None:
            return DayStatus.NOT_MARKED
        return DayStatus(mark.status.value)

    def aggregate(self, roster: Roster, on: date) -> RosterSummary:
        present = absent = not_marked = 0
        for entry in roster.entries:
            status = self.derive_status(entry.marks, on)
            if status == DayStatus.PRESENT:
                present += 1
            elif status == DayStatus.ABSENT:
                absent += 1
            else:
                not_marked += 1

        total = present + absent + not_marked
        return RosterSummary(
            present=present,
            absent=absent,
            not_marked=not_marked,
            total=total,
            percentage=_percentage(present, total),
        )

    def day_report(self, roster: Roster, on: date) -> Sequence[RosterDayRow]:
        rows: list[RosterDayRow] = []
        for entry in roster.entries:
            mark = self.latest_mark(entry.marks, on)
            rows.append(
                RosterDayRow(
                    subject_id=entry.subject_id,
                    name=entry.name,
                    role=entry.role,
                    status=DayStatus(mark.status.value) if mark else DayStatus.NOT_MARKED,
                    marked_at=mark.created_at if mark else None,
                )
            )
        return rows

    def aggregate_range(self, roster: Roster, start: date, end: date) -> dict[date, RosterSummary]:
        if start > end:
            raise ValidationError("Ngày bắt đầu phải trước ngày kết thúc")
        return {day: self.aggregate(roster, day) for day in iter_days(start, end)}
