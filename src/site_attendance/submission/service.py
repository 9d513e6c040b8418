from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..attendance.model import AttendanceEvent, DailyMark
from ..core.enums import SubmissionState
from ..core.exceptions import DuplicateSubmission, SubmissionFailure, ValidationError
from .gateway import Ack, SubmissionGateway

logger = logging.getLogger(__name__)


class SubmissionService:
    """Client-side owner of ``submission_state``.

    The gateway gives no dedup guarantee, so this class is the only guard
    against one client submitting the same evidence twice:

    - a submitted event is never sent again;
    - while an unsubmitted copy for (subject, kind, day) is held, a different
      event for the same slot is refused until the old copy is discarded;
    - a failed event is retried only when ``retry`` is called (one attempt per
      call, no background loop).

    Only unsubmitted events (with their photos) stay in the outbox; once the
    gateway acknowledges an event just its id is kept.
    """

    def __init__(self, gateway: SubmissionGateway):
        self._gateway = gateway
        self._outbox: dict[str, AttendanceEvent] = {}
        self._submitted: set[str] = set()

    def get(self, event_id: str) -> Optional[AttendanceEvent]:
        """The held (pending or failed) copy of an event, if any."""
        return self._outbox.get(event_id)

    def is_submitted(self, event_id: str) -> bool:
        return event_id in self._submitted

    def failed(self) -> Sequence[AttendanceEvent]:
        return [e for e in self._outbox.values() if e.submission_state == SubmissionState.FAILED]

    def conflicting(self, event: AttendanceEvent) -> Optional[AttendanceEvent]:
        """Another unsubmitted event held for the same (subject, kind, day)."""
        for held in self._outbox.values():
            if held.event_id == event.event_id:
                continue
            if held.subject_id == event.subject_id and held.kind == event.kind and held.day == event.day:
                return held
        return None

    def submit(self, event: AttendanceEvent) -> AttendanceEvent:
        if event.is_submitted or event.event_id in self._submitted:
            raise ValidationError("Sự kiện đã được gửi, không thể gửi lại")

        other = self.conflicting(event)
        if other is not None:
            raise DuplicateSubmission(
                f"Đang giữ bản chưa gửi {other.event_id} cho cùng ngày; hãy huỷ bản cũ trước"
            )

        return self._attempt(event.with_state(SubmissionState.PENDING))

    def retry(self, event_id: str) -> AttendanceEvent:
        if event_id in self._submitted:
            raise ValidationError("Sự kiện đã được gửi, không thể gửi lại")
        held = self._outbox.get(event_id)
        if held is None:
            raise ValidationError("Không tìm thấy sự kiện cần gửi lại")
        if held.submission_state != SubmissionState.FAILED:
            raise ValidationError("Chỉ gửi lại được sự kiện đã thất bại")
        return self._attempt(held.with_state(SubmissionState.PENDING))

    def discard(self, event_id: str) -> Optional[AttendanceEvent]:
        held = self._outbox.get(event_id)
        if held is not None and held.submission_state == SubmissionState.PENDING:
            raise ValidationError("Sự kiện đang được gửi")
        return self._outbox.pop(event_id, None)

    def submit_mark(self, mark: DailyMark) -> Ack:
        try:
            ack = self._gateway.submit(mark)
        except Exception as exc:
            raise SubmissionFailure(f"Không gửi được điểm danh: {exc}") from exc
        if not ack.success:
            raise SubmissionFailure(ack.message or "Gateway từ chối điểm danh")
        return ack

    def _attempt(self, pending: AttendanceEvent) -> AttendanceEvent:
        self._outbox[pending.event_id] = pending

        try:
            ack = self._gateway.submit(pending)
        except Exception as exc:
            failed = self._mark_failed(pending, str(exc) or exc.__class__.__name__)
            raise SubmissionFailure(f"Gửi chấm công thất bại: {exc}", event=failed) from exc

        if not ack.success:
            failed = self._mark_failed(pending, ack.message)
            raise SubmissionFailure(ack.message or "Gửi chấm công thất bại", event=failed)

        submitted = pending.with_state(SubmissionState.SUBMITTED)
        del self._outbox[submitted.event_id]
        self._submitted.add(submitted.event_id)
        logger.info("Event %s submitted (%s, %s)", submitted.event_id, submitted.subject_id, submitted.kind.value)
        return submitted

    def _mark_failed(self, pending: AttendanceEvent, reason: str) -> AttendanceEvent:
        # The evidence stays in the outbox for an explicit retry.
        failed = pending.with_state(SubmissionState.FAILED)
        self._outbox[failed.event_id] = failed
        logger.warning("Submission of event %s failed: %s", failed.event_id, reason)
        return failed
