from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import FrozenSet, Optional, Sequence

from ..core.enums import EventFlag, EventKind, MarkStatus, SubmissionState


@dataclass(frozen=True)
class PhotoRef:
    """Ảnh chụp đã đóng băng từ camera (bằng chứng của sự kiện)."""

    data: bytes = field(repr=False)
    captured_at: datetime
    content_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Location:
    """Vị trí đã có toạ độ; địa chỉ hiển thị có thể đến sau."""

    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    resolved_address: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def display_text(self) -> str:
        if self.resolved_address:
            return self.resolved_address
        return f"{self.latitude:.5f}, {self.longitude:.5f}"


@dataclass(frozen=True)
class LocationSnapshot:
    """What a capture session knows about location at one instant.

    Coordinates may be missing (no fix yet, or the fix failed); ``stale`` means
    the coordinates belong to an earlier request of the same session whose
    refresh failed.
    """

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_m: Optional[float] = None
    address: Optional[str] = None
    address_is_fallback: bool = False
    observed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    stale: bool = False
    error: Optional[str] = None

    @property
    def has_fix(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class AttendanceEvent:
    """Thực thể miền (domain): sự kiện check-in/check-out có ảnh và vị trí."""

    event_id: str
    subject_id: str
    kind: EventKind
    captured_at: datetime
    photo: Optional[PhotoRef]
    location: Optional[Location]
    flags: FrozenSet[EventFlag] = frozenset()
    submission_state: SubmissionState = SubmissionState.PENDING

    @property
    def day(self) -> date:
        return self.captured_at.date()

    @property
    def is_submitted(self) -> bool:
        return self.submission_state == SubmissionState.SUBMITTED

    def with_state(self, state: SubmissionState) -> "AttendanceEvent":
        return replace(self, submission_state=state)

    def without_photo(self) -> "AttendanceEvent":
        """Store-side retention view: same event, photo payload dropped."""
        return replace(self, photo=None)


@dataclass(frozen=True)
class DailyMark:
    """Bản ghi có mặt/vắng do giám sát viên nhập, chỉ thêm mới, không sửa."""

    subject_id: str
    date: date
    status: MarkStatus
    created_at: datetime
    mark_id: Optional[int] = None
    site_id: Optional[str] = None
    marked_by: Optional[str] = None


@dataclass(frozen=True)
class RosterEntry:
    subject_id: str
    name: str = ""
    role: Optional[str] = None
    marks: Sequence[DailyMark] = ()
    events: Sequence[AttendanceEvent] = ()


@dataclass(frozen=True)
class Roster:
    """Danh sách công nhân thuộc một công trường."""

    site_id: str
    entries: Sequence[RosterEntry] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, subject_id: str) -> Optional[RosterEntry]:
        for entry in self.entries:
            if entry.subject_id == subject_id:
                return entry
        return None
