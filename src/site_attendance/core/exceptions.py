from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..attendance.model import AttendanceEvent


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class MissingEvidence(ValidationError):
    """Raised when an event is assembled without its photo."""


class MalformedLocation(ValidationError):
    """Raised when a location carries no usable coordinates."""


class DuplicateSubmission(ValidationError):
    """Raised when a second local copy of the same event would be submitted."""


class CaptureError(DomainError):
    """Terminal failure of a capture session."""


class PermissionDenied(CaptureError):
    pass


class DeviceUnavailable(CaptureError):
    pass


class NoActiveStream(CaptureError):
    pass


class SessionClosed(CaptureError):
    pass


class LocationError(DomainError):
    """Non-terminal: the session carries on without a (fresh) fix."""


class LocationTimeout(LocationError):
    pass


class LocationUnavailable(LocationError):
    pass


class GeocodeFailure(DomainError):
    """Only raised inside the geocoding transport; always recovered to a fallback."""


class SubmissionFailure(DomainError):
    """The gateway rejected or could not receive an event.

    The failed local copy travels with the exception so the evidence is
    never lost.
    """

    def __init__(self, message: str, *, event: Optional["AttendanceEvent"] = None):
        super().__init__(message)
        self.event = event
