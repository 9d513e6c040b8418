from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

import pytest

from site_attendance.capture.devices import LocationFix, LocationRequest
from site_attendance.core.enums import AddressSource
from site_attendance.core.exceptions import DeviceUnavailable
from site_attendance.geocoding.resolver import AddressResult

T0 = datetime(2024, 1, 1, 8, 0, 0)


class FakeStream:
    def __init__(self, frame: bytes = b"\xff\xd8frame", fail_read: bool = False):
        self.frame = frame
        self.fail_read = fail_read
        self.released = 0

    async def read_frame(self) -> bytes:
        if self.fail_read:
            raise DeviceUnavailable("camera unplugged")
        return self.frame

    def release(self) -> None:
        self.released += 1


class FakeCamera:
    def __init__(self):
        self.granted = True
        self.fail_open = False
        self.fail_read = False
        self.streams: list[FakeStream] = []

    async def request_permission(self) -> bool:
        return self.granted

    async def open_stream(self) -> FakeStream:
        if self.fail_open:
            raise DeviceUnavailable("no camera")
        stream = FakeStream(fail_read=self.fail_read)
        self.streams.append(stream)
        return stream


class FakeLocator:
    """Answers immediately with ``auto`` or parks each request until ``respond``."""

    def __init__(self):
        self.granted = True
        self.auto: Optional[LocationFix] = None
        self.error: Optional[Exception] = None
        self.requests: list[LocationRequest] = []
        self.pending: list[asyncio.Future] = []

    async def request_permission(self) -> bool:
        return self.granted

    async def current_position(self, request: LocationRequest) -> LocationFix:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.auto is not None:
            return self.auto
        fut = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut

    async def wait_for_requests(self, count: int) -> None:
        while len(self.pending) < count:
            await asyncio.sleep(0)

    def respond(self, index: int, fix: LocationFix) -> None:
        fut = self.pending[index]
        if not fut.done():
            fut.set_result(fix)


class FakeGeocoder:
    """With ``park`` set, each lookup waits for ``release`` and ignores cancellation,
    like a blocking HTTP call that finishes after its caller moved on."""

    def __init__(self):
        self.calls: list[tuple[float, float]] = []
        self.park = False
        self.parked: list[asyncio.Future] = []

    async def resolve_async(self, latitude: float, longitude: float) -> AddressResult:
        self.calls.append((latitude, longitude))
        if self.park:
            fut = asyncio.get_running_loop().create_future()
            self.parked.append(fut)
            try:
                await asyncio.shield(fut)
            except asyncio.CancelledError:
                await fut
        return AddressResult(
            display=f"addr {latitude:.1f},{longitude:.1f}",
            source=AddressSource.GEOCODER,
            latitude=latitude,
            longitude=longitude,
            resolved_at=T0,
        )

    async def wait_for_parked(self, count: int) -> None:
        while len(self.parked) < count:
            await asyncio.sleep(0)

    def release(self, index: int) -> None:
        self.parked[index].set_result(None)


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def locator():
    return FakeLocator()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def clock():
    return lambda: T0


@pytest.fixture
def make_fix():
    def _make(lat: float, lon: float, observed_at: datetime = T0) -> LocationFix:
        return LocationFix(latitude=lat, longitude=lon, accuracy_m=5.0, observed_at=observed_at)

    return _make
