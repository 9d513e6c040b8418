from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional, Union

from ..common.datetime_utils import now_local
from ..common.validators import coerce_coordinate, require_coordinates, require_non_empty
from ..core.constants import DEFAULT_CLOCK_SKEW_SECONDS
from ..core.enums import EventFlag, EventKind
from ..core.exceptions import MalformedLocation, MissingEvidence, ValidationError
from .model import AttendanceEvent, Location, LocationSnapshot, PhotoRef

LocationInput = Union[Location, LocationSnapshot, Mapping[str, Any], None]


class EventAssembler:
    """Turns a frozen photo and a location snapshot into one immutable event.

    Assembly has no side effects, so it can be retried without touching the
    camera again.
    """

    def __init__(self, *, clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS):
        self._skew = timedelta(seconds=int(clock_skew_seconds))

    def assemble(
        self,
        kind: EventKind | str,
        photo: Optional[PhotoRef],
        location: LocationInput,
        subject_id: str,
        captured_at: datetime,
        *,
        now: datetime | None = None,
    ) -> AttendanceEvent:
        kind = self._parse_kind(kind)
        subject_id = require_non_empty(subject_id, "subject_id")

        if photo is None or not photo.data:
            raise MissingEvidence("Thiếu ảnh chụp, không thể tạo sự kiện chấm công")

        if now is None:
            now = datetime.now(captured_at.tzinfo) if captured_at.tzinfo else now_local()
        if captured_at > now + self._skew:
            raise ValidationError("Thời điểm chụp nằm trong tương lai")

        flags: set[EventFlag] = set()
        resolved = self._to_location(location, flags)
        if resolved is None:
            flags.add(EventFlag.MISSING_LOCATION)

        return AttendanceEvent(
            event_id=uuid.uuid4().hex,
            subject_id=subject_id,
            kind=kind,
            captured_at=captured_at,
            photo=photo,
            location=resolved,
            flags=frozenset(flags),
        )

    @staticmethod
    def _parse_kind(kind: EventKind | str) -> EventKind:
        try:
            return EventKind(kind)
        except ValueError:
            raise ValidationError(f"Loại chấm công không hợp lệ: {kind!r}") from None

    def _to_location(self, location: LocationInput, flags: set[EventFlag]) -> Optional[Location]:
        if location is None:
            return None

        if isinstance(location, Location):
            require_coordinates(location.latitude, location.longitude)
            if not location.resolved_address:
                flags.add(EventFlag.UNRESOLVED_ADDRESS)
            return location

        if isinstance(location, LocationSnapshot):
            if not location.has_fix:
                if location.address:
                    raise MalformedLocation("Vị trí chỉ có địa chỉ, thiếu toạ độ")
                # A session with no fix at all is a missing location, not a malformed one.
                return None
            lat, lon = require_coordinates(location.latitude, location.longitude)
            if location.stale:
                flags.add(EventFlag.STALE_LOCATION)
            if not location.address or location.address_is_fallback:
                flags.add(EventFlag.UNRESOLVED_ADDRESS)
            return Location(
                latitude=lat,
                longitude=lon,
                accuracy_m=location.accuracy_m,
                resolved_address=location.address,
                resolved_at=location.resolved_at,
            )

        if isinstance(location, Mapping):
            lat = coerce_coordinate(location.get("latitude"), "latitude")
            lon = coerce_coordinate(location.get("longitude"), "longitude")
            lat, lon = require_coordinates(lat, lon)
            address = location.get("address") or location.get("resolved_address")
            if not address:
                flags.add(EventFlag.UNRESOLVED_ADDRESS)
            return Location(
                latitude=lat,
                longitude=lon,
                accuracy_m=coerce_coordinate(location.get("accuracy"), "accuracy"),
                resolved_address=address or None,
                resolved_at=location.get("resolved_at"),
            )

        raise MalformedLocation(f"Kiểu dữ liệu vị trí không hỗ trợ: {type(location)!r}")
