from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..attendance.assembler import EventAssembler
from ..attendance.model import AttendanceEvent, LocationSnapshot, PhotoRef
from ..core.enums import EventKind
from ..core.exceptions import (
    DuplicateSubmission,
    LocationUnavailable,
    MissingEvidence,
    SessionClosed,
    SubmissionFailure,
)
from ..submission.service import SubmissionService
from .orchestrator import SensorOrchestrator
from .session import SessionHandle

logger = logging.getLogger(__name__)


class CaptureWorkflow:
    """One check-in/check-out as the user drives it: start, capture, submit.

    The location fix never gates the photo. At submit time a missing fix is
    allowed and flagged on the event unless the caller asks otherwise, in
    which case ``LocationUnavailable`` lets the UI offer "retry location".
    A failed submission keeps the event for one explicit ``retry``.
    """

    def __init__(
        self,
        orchestrator: SensorOrchestrator,
        assembler: EventAssembler,
        submissions: SubmissionService,
    ):
        self._orchestrator = orchestrator
        self._assembler = assembler
        self._submissions = submissions
        self._handle: Optional[SessionHandle] = None
        self._failed_event_id: Optional[str] = None

    @property
    def session(self) -> Optional[SessionHandle]:
        return self._handle

    @property
    def failed_event(self) -> Optional[AttendanceEvent]:
        if self._failed_event_id is None:
            return None
        return self._submissions.get(self._failed_event_id)

    def _require_session(self) -> SessionHandle:
        if self._handle is None or self._handle.is_closed:
            raise SessionClosed("Chưa bắt đầu phiên chấm công")
        return self._handle

    async def start(self, subject_id: str, kind: EventKind | str) -> SessionHandle:
        if self._handle is not None:
            self._orchestrator.end_session(self._handle, reason="superseded")
        self._handle = await self._orchestrator.begin_session(subject_id, kind)
        return self._handle

    async def refresh_location(self) -> int:
        return await self._orchestrator.refresh_location(self._require_session())

    async def capture(self) -> PhotoRef:
        return await self._orchestrator.capture_photo(self._require_session())

    def location_status(self) -> LocationSnapshot:
        return self._require_session().location_snapshot()

    async def wait_for_location(self, timeout: float | None = None) -> LocationSnapshot:
        return await self._orchestrator.wait_for_location(self._require_session(), timeout)

    def cancel(self) -> None:
        if self._handle is not None:
            self._orchestrator.cancel_session(self._handle)
            self._handle = None

    async def submit(self, *, allow_without_location: bool = True) -> AttendanceEvent:
        handle = self._require_session()
        photo = handle.photo
        if photo is None:
            raise MissingEvidence("Cần chụp ảnh trước khi gửi chấm công")

        snapshot = handle.location_snapshot()
        if not snapshot.has_fix and not allow_without_location:
            raise LocationUnavailable(snapshot.error or "Chưa xác định được vị trí")

        event = self._assembler.assemble(
            handle.kind,
            photo,
            snapshot,
            handle.subject_id,
            photo.captured_at,
        )
        other = self._submissions.conflicting(event)
        if other is not None:
            # Session stays open with its photo until the held copy is retried or discarded.
            self._failed_event_id = other.event_id
            raise DuplicateSubmission(
                f"Đang giữ bản chưa gửi {other.event_id} cho cùng ngày; hãy gửi lại hoặc huỷ bản cũ trước"
            )

        # The event is frozen; the session has nothing left to contribute.
        self._orchestrator.end_session(handle)
        self._handle = None

        if event.flags:
            logger.info("Event %s submitted with flags %s", event.event_id, sorted(f.value for f in event.flags))
        return await self._send(self._submissions.submit, event.event_id, event)

    async def retry(self) -> AttendanceEvent:
        if self._failed_event_id is None:
            raise SubmissionFailure("Không có sự kiện nào cần gửi lại")
        return await self._send(self._submissions.retry, self._failed_event_id, self._failed_event_id)

    def discard_failed(self) -> Optional[AttendanceEvent]:
        if self._failed_event_id is None:
            return None
        dropped = self._submissions.discard(self._failed_event_id)
        self._failed_event_id = None
        return dropped

    async def _send(self, call, event_id: str, arg) -> AttendanceEvent:
        try:
            submitted = await asyncio.to_thread(call, arg)
        except SubmissionFailure:
            self._failed_event_id = event_id
            raise
        self._failed_event_id = None
        return submitted
