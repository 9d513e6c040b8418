from __future__ import annotations

from datetime import date, datetime

import pytest

from site_attendance.attendance.model import AttendanceEvent, DailyMark, PhotoRef
from site_attendance.core.enums import EventKind, MarkStatus, SubmissionState
from site_attendance.core.exceptions import DuplicateSubmission, SubmissionFailure, ValidationError
from site_attendance.submission.gateway import Ack
from site_attendance.submission.service import SubmissionService


class ScriptedGateway:
    """Replies from a script; an Exception entry is raised instead of returned."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.received = []

    def submit(self, record):
        self.received.append(record)
        reply = self.replies.pop(0) if self.replies else Ack(success=True)
        if isinstance(reply, Exception):
            raise reply
        return reply


def event(event_id: str, kind: EventKind = EventKind.CHECK_IN, hour: int = 8) -> AttendanceEvent:
    at = datetime(2024, 1, 1, hour, 0)
    return AttendanceEvent(
        event_id=event_id,
        subject_id="staff-1",
        kind=kind,
        captured_at=at,
        photo=PhotoRef(data=b"jpeg", captured_at=at),
        location=None,
    )


def test_successful_submit_marks_submitted():
    service = SubmissionService(ScriptedGateway())

    submitted = service.submit(event("e1"))

    assert submitted.submission_state == SubmissionState.SUBMITTED
    assert service.is_submitted("e1")


def test_submitted_events_are_remembered_by_id_only():
    gateway = ScriptedGateway(Ack(success=False))
    service = SubmissionService(gateway)
    with pytest.raises(SubmissionFailure):
        service.submit(event("e1"))
    assert service.get("e1").photo is not None

    service.retry("e1")
    service.submit(event("e2", kind=EventKind.CHECK_OUT, hour=17))

    assert service.get("e1") is None
    assert service.get("e2") is None
    assert service.is_submitted("e1") and service.is_submitted("e2")
    assert service._outbox == {}
    assert service._submitted == {"e1", "e2"}


def test_submitted_event_is_never_resent():
    gateway = ScriptedGateway()
    service = SubmissionService(gateway)
    submitted = service.submit(event("e1"))

    with pytest.raises(ValidationError):
        service.submit(submitted)
    with pytest.raises(ValidationError):
        service.submit(event("e1"))
    assert len(gateway.received) == 1


@pytest.mark.parametrize("reply", [Ack(success=False, message="rejected"), ConnectionError("offline")])
def test_failure_keeps_evidence_as_failed(reply):
    service = SubmissionService(ScriptedGateway(reply))

    with pytest.raises(SubmissionFailure) as exc_info:
        service.submit(event("e1"))

    failed = exc_info.value.event
    assert failed.submission_state == SubmissionState.FAILED
    assert failed.photo is not None
    assert service.failed() == [failed]


def test_retry_is_one_attempt_per_call():
    gateway = ScriptedGateway(Ack(success=False), Ack(success=False), Ack(success=True))
    service = SubmissionService(gateway)

    with pytest.raises(SubmissionFailure):
        service.submit(event("e1"))
    with pytest.raises(SubmissionFailure):
        service.retry("e1")
    retried = service.retry("e1")

    assert retried.submission_state == SubmissionState.SUBMITTED
    assert len(gateway.received) == 3
    assert service.failed() == []


def test_retry_only_for_failed_events():
    service = SubmissionService(ScriptedGateway())
    service.submit(event("e1"))

    with pytest.raises(ValidationError):
        service.retry("e1")
    with pytest.raises(ValidationError):
        service.retry("missing")


def test_second_event_for_same_slot_refused_while_first_unsubmitted():
    gateway = ScriptedGateway(Ack(success=False))
    service = SubmissionService(gateway)
    with pytest.raises(SubmissionFailure):
        service.submit(event("e1"))

    assert service.conflicting(event("e2", hour=9)).event_id == "e1"
    with pytest.raises(DuplicateSubmission):
        service.submit(event("e2", hour=9))

    # A different kind on the same day is a different slot.
    service.submit(event("e3", kind=EventKind.CHECK_OUT, hour=17))

    assert service.discard("e1").event_id == "e1"
    assert service.submit(event("e2", hour=9)).is_submitted


def test_submitted_event_does_not_block_same_slot():
    service = SubmissionService(ScriptedGateway())
    service.submit(event("e1"))

    assert service.submit(event("e2", hour=9)).is_submitted


def test_submit_mark_wraps_gateway_errors():
    mark = DailyMark(subject_id="w1", date=date(2024, 1, 1), status=MarkStatus.PRESENT, created_at=datetime(2024, 1, 1, 8, 0))

    assert SubmissionService(ScriptedGateway()).submit_mark(mark).success

    with pytest.raises(SubmissionFailure):
        SubmissionService(ScriptedGateway(Ack(success=False, message="no"))).submit_mark(mark)
    with pytest.raises(SubmissionFailure):
        SubmissionService(ScriptedGateway(ValueError("site_id missing"))).submit_mark(mark)
