from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PHOTO_RETENTION_DAYS
from ..core.enums import DayStatus, MarkStatus
from ..core.exceptions import ValidationError
from ..submission.service import SubmissionService
from .calendar import CalendarClassifier, DayClassification
from .derivation import RosterDayRow, RosterSummary, StatusDerivationEngine
from .model import AttendanceEvent, DailyMark, Roster
from .repository import RosterRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayDetail:
    day: date
    events: Sequence[AttendanceEvent]
    classification: DayClassification


class AttendanceDashboardService:
    """Every dashboard reads attendance through here, never re-deriving inline."""

    def __init__(
        self,
        roster: RosterRepository,
        submissions: SubmissionService,
        *,
        engine: StatusDerivationEngine | None = None,
        classifier: CalendarClassifier | None = None,
        photo_retention_days: int = DEFAULT_PHOTO_RETENTION_DAYS,
    ):
        self._roster = roster
        self._submissions = submissions
        self._engine = engine or StatusDerivationEngine()
        self._classifier = classifier or CalendarClassifier()
        self._photo_retention = timedelta(days=int(photo_retention_days))

    def _get_roster(self, site_id: str) -> Roster:
        roster = self._roster.get_roster(site_id)
        if roster is None:
            raise ValidationError("Công trường không tồn tại")
        return roster

    def site_summary(self, site_id: str, on: date) -> RosterSummary:
        return self._engine.aggregate(self._get_roster(site_id), on)

    def site_day_report(self, site_id: str, on: date) -> Sequence[RosterDayRow]:
        return self._engine.day_report(self._get_roster(site_id), on)

    def site_trend(self, site_id: str, start: date, end: date) -> dict[date, RosterSummary]:
        return self._engine.aggregate_range(self._get_roster(site_id), start, end)

    def subject_status(self, subject_id: str, on: date) -> DayStatus:
        return self._engine.derive_status(self._roster.marks_for(subject_id), on)

    def record_mark(
        self,
        *,
        site_id: str,
        subject_id: str,
        status: MarkStatus | str,
        on: Optional[date] = None,
        marked_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DailyMark:
        try:
            status = MarkStatus(status)
        except ValueError:
            raise ValidationError(f"Trạng thái điểm danh không hợp lệ: {status!r}") from None

        roster = self._get_roster(site_id)
        if roster.find(subject_id) is None:
            raise ValidationError("Công nhân không thuộc công trường này")

        now = now or now_local()
        mark = DailyMark(
            subject_id=subject_id,
            date=on or now.date(),
            status=status,
            created_at=now,
            site_id=site_id,
            marked_by=marked_by,
        )
        self._submissions.submit_mark(mark)
        logger.info("Marked %s as %s on %s (site %s)", subject_id, status.value, mark.date, site_id)
        return mark

    def subject_calendar(self, subject_id: str, year: int, month: int) -> dict[date, DayClassification]:
        if not 1 <= int(month) <= 12:
            raise ValidationError("Tháng không hợp lệ")
        start = date(int(year), int(month), 1)
        end = (start + timedelta(days=32)).replace(day=1) - timedelta(days=1)
        events = self._roster.events_for(subject_id, start=start, end=end)
        return self._classifier.classify_month(events, int(year), int(month))

    def subject_day(self, subject_id: str, on: date) -> DayDetail:
        events = self._roster.events_for(subject_id, start=on, end=on)
        grouped = self._classifier.group_by_date(events)
        return DayDetail(
            day=on,
            events=grouped.get(on, []),
            classification=self._classifier.classify_day(events, on),
        )

    def subject_history(self, subject_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceEvent]:
        if int(limit) <= 0:
            raise ValidationError("limit phải lớn hơn 0")
        events = list(self._roster.events_for(subject_id, limit=int(limit)))
        events.sort(key=lambda e: (e.captured_at, e.event_id), reverse=True)
        return events

    def cleanup_old_photos(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or now_local()) - self._photo_retention
        purged = self._roster.purge_photos_before(cutoff)
        logger.info("Purged photos of %d events older than %s", purged, cutoff.isoformat())
        return purged
