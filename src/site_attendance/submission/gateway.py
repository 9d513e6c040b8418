from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Union

import requests

from ..attendance.assembler import EventAssembler
from ..attendance.model import AttendanceEvent, DailyMark, PhotoRef
from ..attendance.repository import RosterRepository
from ..common.datetime_utils import now_local
from ..core.enums import EventFlag, EventKind
from ..core.exceptions import MalformedLocation, ValidationError

logger = logging.getLogger(__name__)

Submittable = Union[AttendanceEvent, DailyMark]

# Wire names used by the REST backend for event kinds.
_WIRE_KIND = {
    EventKind.CHECK_IN: "login",
    EventKind.CHECK_OUT: "logout",
}
_KIND_FROM_WIRE = {wire: kind for kind, wire in _WIRE_KIND.items()}

# attendance_events.event_id is CHAR(32)
_MAX_EVENT_ID = 32


@dataclass(frozen=True)
class Ack:
    success: bool
    message: str = ""
    record_id: Optional[str] = None


class SubmissionGateway(Protocol):
    """Accepts one record. No dedup key, no transaction: callers protect themselves."""

    def submit(self, record: Submittable) -> Ack:
        raise NotImplementedError


def event_payload(event: AttendanceEvent) -> dict[str, Any]:
    photo = None
    if event.photo is not None:
        encoded = base64.b64encode(event.photo.data).decode("ascii")
        photo = f"data:{event.photo.content_type};base64,{encoded}"

    location = None
    if event.location is not None:
        loc = event.location
        location = {
            "latitude": loc.latitude,
            "longitude": loc.longitude,
            "accuracy": loc.accuracy_m,
            "address": loc.resolved_address,
            "timestamp": loc.resolved_at.isoformat() if loc.resolved_at else None,
        }

    return {
        "type": _WIRE_KIND[event.kind],
        "photo": photo,
        "location": location,
        "date": event.captured_at.isoformat(),
        "userId": event.subject_id,
        "clientEventId": event.event_id,
        "flags": sorted(f.value for f in event.flags),
    }


def _parse_timestamp(value: Any, field_name: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field_name} phải là thời điểm ISO 8601") from None
    # Stored times are naive local time.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def decode_photo(value: Any, captured_at: datetime) -> Optional[PhotoRef]:
    """Accepts a ``data:<type>;base64,...`` URI or bare base64."""
    if not value:
        return None
    if not isinstance(value, str):
        raise ValidationError("Ảnh phải là chuỗi base64")

    content_type = "image/jpeg"
    encoded = value
    if value.startswith("data:"):
        header, _, encoded = value.partition(",")
        content_type = header[len("data:"):].split(";")[0] or content_type
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Ảnh không đúng định dạng base64") from None
    return PhotoRef(data=data, captured_at=captured_at, content_type=content_type)


def event_from_payload(
    body: Mapping[str, Any],
    assembler: EventAssembler,
    *,
    now: Optional[datetime] = None,
) -> AttendanceEvent:
    """Rebuilds an event from the ``event_payload`` shape on the receiving side."""
    wire = body.get("type")
    kind = _KIND_FROM_WIRE.get(wire, wire) if isinstance(wire, str) else wire
    captured_at = _parse_timestamp(body.get("date"), "date") or now or now_local()

    location = body.get("location")
    if location is not None:
        if not isinstance(location, Mapping):
            raise MalformedLocation("location phải là một đối tượng")
        location = dict(location, resolved_at=_parse_timestamp(location.get("timestamp"), "location.timestamp"))

    event = assembler.assemble(
        kind,
        decode_photo(body.get("photo"), captured_at),
        location,
        str(body.get("userId") or ""),
        captured_at,
        now=now,
    )

    flags = set(event.flags)
    for value in body.get("flags") or ():
        try:
            flags.add(EventFlag(value))
        except ValueError:
            raise ValidationError(f"Cờ sự kiện không hợp lệ: {value!r}") from None

    event_id = str(body.get("clientEventId") or event.event_id)
    if len(event_id) > _MAX_EVENT_ID:
        raise ValidationError("clientEventId không hợp lệ")
    return replace(event, event_id=event_id, flags=frozenset(flags))


def mark_payload(mark: DailyMark) -> dict[str, Any]:
    return {
        "date": mark.date.isoformat(),
        "status": mark.status.value,
        "createdAt": mark.created_at.isoformat(),
        "supervisorId": mark.marked_by,
    }


class HttpSubmissionGateway:
    """Posts records to the REST backend."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._session = session or requests.Session()
        if token:
            self._session.headers.update({"Authorization": f"Bearer {token}"})

    def _url_for(self, record: Submittable) -> str:
        if isinstance(record, AttendanceEvent):
            return f"{self._base_url}/api/attendance"
        if not record.site_id:
            raise ValueError("DailyMark.site_id is required for HTTP submission")
        return f"{self._base_url}/api/sites/{record.site_id}/workers/{record.subject_id}/attendance"

    def submit(self, record: Submittable) -> Ack:
        url = self._url_for(record)
        payload = event_payload(record) if isinstance(record, AttendanceEvent) else mark_payload(record)

        with self._session.post(url, json=payload, timeout=self._timeout) as response:
            try:
                body = response.json()
            except ValueError:
                body = {}

        if not isinstance(body, dict):
            body = {}
        message = str(body.get("message") or response.reason or "")
        if response.status_code >= 400 or body.get("success") is False:
            logger.warning("Gateway rejected %s: %s %s", type(record).__name__, response.status_code, message)
            return Ack(success=False, message=message)

        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        record_id = data.get("id") or data.get("_id")
        return Ack(success=True, message=message, record_id=str(record_id) if record_id else None)


class StoreSubmissionGateway:
    """Writes straight into the roster store (server side, or tests)."""

    def __init__(self, repository: RosterRepository):
        self._repository = repository

    def submit(self, record: Submittable) -> Ack:
        if isinstance(record, AttendanceEvent):
            record_id = self._repository.append_event(record)
        else:
            record_id = self._repository.append_mark(record)
        return Ack(success=True, message="stored", record_id=str(record_id))
