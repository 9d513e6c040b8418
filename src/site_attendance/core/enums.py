from __future__ import annotations

from enum import Enum


class EventKind(str, Enum):
    """Loại sự kiện chấm công tự phục vụ."""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class SubmissionState(str, Enum):
    """Trạng thái gửi của một sự kiện, do client quản lý đến khi gateway xác nhận."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    FAILED = "failed"


class MarkStatus(str, Enum):
    """Trạng thái do giám sát viên nhập cho một ngày."""

    PRESENT = "present"
    ABSENT = "absent"


class DayStatus(str, Enum):
    """Trạng thái suy diễn cuối cùng của một người trong một ngày."""

    PRESENT = "present"
    ABSENT = "absent"
    NOT_MARKED = "not_marked"


class DayClass(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    ANOMALOUS = "anomalous"
    EMPTY = "empty"


class EventFlag(str, Enum):
    """Degradations accepted at assembly time."""

    MISSING_LOCATION = "missing_location"
    STALE_LOCATION = "stale_location"
    UNRESOLVED_ADDRESS = "unresolved_address"


class AddressSource(str, Enum):
    GEOCODER = "geocoder"
    FALLBACK = "fallback"
