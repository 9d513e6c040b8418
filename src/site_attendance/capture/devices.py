from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_LOCATION_TIMEOUT_SECONDS


@dataclass(frozen=True)
class LocationRequest:
    """Fix policy: always high accuracy, bounded wait, never a cached fix."""

    issued_at: datetime
    timeout_seconds: float = DEFAULT_LOCATION_TIMEOUT_SECONDS
    high_accuracy: bool = True
    maximum_age_seconds: float = 0


@dataclass(frozen=True)
class LocationFix:
    latitude: float
    longitude: float
    accuracy_m: Optional[float]
    observed_at: datetime


class CameraStream(Protocol):
    async def read_frame(self) -> bytes:
        """Return the current frame, JPEG encoded. Raises DeviceUnavailable."""
        raise NotImplementedError

    def release(self) -> None:
        """Release the device. Must be idempotent."""
        raise NotImplementedError


class CameraDevice(Protocol):
    async def request_permission(self) -> bool:
        raise NotImplementedError

    async def open_stream(self) -> CameraStream:
        """Raises DeviceUnavailable when the camera cannot start."""
        raise NotImplementedError


class LocationDevice(Protocol):
    async def request_permission(self) -> bool:
        raise NotImplementedError

    async def current_position(self, request: LocationRequest) -> LocationFix:
        """Raises LocationUnavailable; timeouts are enforced by the caller."""
        raise NotImplementedError


class FixedLocationDevice:
    """Location source for a kiosk terminal installed at a known site."""

    def __init__(self, latitude: float, longitude: float, *, accuracy_m: float = 5.0):
        self._latitude = float(latitude)
        self._longitude = float(longitude)
        self._accuracy_m = float(accuracy_m)

    async def request_permission(self) -> bool:
        return True

    async def current_position(self, request: LocationRequest) -> LocationFix:
        return LocationFix(
            latitude=self._latitude,
            longitude=self._longitude,
            accuracy_m=self._accuracy_m,
            observed_at=now_local(),
        )
