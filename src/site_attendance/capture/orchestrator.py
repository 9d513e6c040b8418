from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Protocol

from ..attendance.model import LocationSnapshot, PhotoRef
from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_LOCATION_TIMEOUT_SECONDS
from ..core.enums import EventKind
from ..core.exceptions import (
    DeviceUnavailable,
    LocationError,
    LocationTimeout,
    LocationUnavailable,
    NoActiveStream,
    PermissionDenied,
    SessionClosed,
    ValidationError,
)
from ..geocoding.resolver import AddressResult
from .devices import CameraDevice, LocationDevice, LocationRequest
from .session import (
    Acquiring,
    Captured,
    Closed,
    Fixed,
    NoFix,
    Ready,
    Refining,
    Resolving,
    SessionHandle,
)

logger = logging.getLogger(__name__)


class AddressResolver(Protocol):
    async def resolve_async(self, latitude: float, longitude: float) -> AddressResult:
        raise NotImplementedError


class SensorOrchestrator:
    """Owns capture sessions: one camera stream plus one location fix each.

    Camera and location are independent. A session reaches ``Ready`` as soon
    as the camera is open, whatever the location is doing, and the location
    can be refreshed at any time without touching the camera. Each location
    request bumps the session's generation; results from an older generation
    are dropped, so the last *request* wins regardless of response order.
    """

    def __init__(
        self,
        camera: CameraDevice,
        locator: LocationDevice,
        geocoder: AddressResolver,
        *,
        location_timeout: float = DEFAULT_LOCATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._camera = camera
        self._locator = locator
        self._geocoder = geocoder
        self._location_timeout = float(location_timeout)
        self._clock = clock
        self._active: dict[str, SessionHandle] = {}

    def active_session(self, subject_id: str) -> Optional[SessionHandle]:
        return self._active.get(subject_id)

    async def begin_session(self, subject_id: str, kind: EventKind | str) -> SessionHandle:
        try:
            kind = EventKind(kind)
        except ValueError:
            raise ValidationError(f"Loại chấm công không hợp lệ: {kind!r}") from None

        prior = self._active.get(subject_id)
        if prior is not None:
            logger.warning("Force-closing session %s of subject %s before starting a new one", prior.session_id, subject_id)
            self.end_session(prior, reason="superseded")

        handle = SessionHandle(
            session_id=uuid.uuid4().hex,
            subject_id=subject_id,
            kind=kind,
            started_at=self._clock(),
            phase=Acquiring(),
        )
        self._active[subject_id] = handle
        logger.debug("Session %s acquiring (%s, %s)", handle.session_id, subject_id, kind.value)

        opened = False
        try:
            camera_ok, location_ok = await asyncio.gather(
                self._camera.request_permission(),
                self._locator.request_permission(),
            )
            if not camera_ok:
                raise PermissionDenied("Cần quyền truy cập camera để chấm công")
            if not location_ok:
                raise PermissionDenied("Cần quyền truy cập vị trí để chấm công")

            # The fix runs in the background while the camera opens.
            self._start_location_request(handle)
            stream = await self._camera.open_stream()

            if handle.is_closed:
                stream.release()
                raise SessionClosed("Phiên chụp đã bị đóng trong lúc mở camera")

            handle.phase = Ready(stream)
            opened = True
        finally:
            if not opened:
                self.end_session(handle, reason="failed")

        logger.debug("Session %s ready", handle.session_id)
        return handle

    async def refresh_location(self, handle: SessionHandle) -> int:
        """Request a fresh fix; returns the generation of the new request."""
        if handle.is_closed:
            raise SessionClosed("Phiên chụp đã kết thúc")
        return self._start_location_request(handle)

    async def capture_photo(self, handle: SessionHandle) -> PhotoRef:
        phase = handle.phase
        if not isinstance(phase, Ready):
            raise NoActiveStream("Camera chưa sẵn sàng hoặc phiên đã kết thúc")

        try:
            frame = await phase.stream.read_frame()
        except DeviceUnavailable:
            self.end_session(handle, reason="failed")
            raise

        if handle.phase is not phase:
            raise NoActiveStream("Phiên chụp đã bị đóng trong lúc chụp")

        photo = PhotoRef(data=frame, captured_at=self._clock())
        phase.stream.release()
        handle.phase = Captured(photo)
        logger.debug("Session %s captured %d bytes", handle.session_id, photo.size)
        return photo

    def end_session(self, handle: SessionHandle, *, reason: str = "ended") -> None:
        if handle.is_closed:
            return

        phase = handle.phase
        handle.phase = Closed(reason)
        if isinstance(phase, Ready):
            phase.stream.release()

        task = handle.location_task
        if task is not None and not task.done():
            task.cancel()
        handle.location_task = None

        if self._active.get(handle.subject_id) is handle:
            del self._active[handle.subject_id]
        logger.debug("Session %s closed (%s)", handle.session_id, reason)

    def cancel_session(self, handle: SessionHandle) -> None:
        self.end_session(handle, reason="cancelled")

    def location_snapshot(self, handle: SessionHandle) -> LocationSnapshot:
        return handle.location_snapshot()

    async def wait_for_location(self, handle: SessionHandle, timeout: float | None = None) -> LocationSnapshot:
        """Wait for the current location request (if any) to settle."""
        task = handle.location_task
        if task is not None and not task.done():
            await asyncio.wait({task}, timeout=timeout)
        return handle.location_snapshot()

    def _start_location_request(self, handle: SessionHandle) -> int:
        handle.location_generation += 1
        generation = handle.location_generation

        task = handle.location_task
        if task is not None and not task.done():
            task.cancel()

        current = handle.location
        if isinstance(current, Resolving):
            previous = current.previous
        elif isinstance(current, (Fixed, Refining)):
            previous = current
        else:
            previous = None

        handle.location = Resolving(generation=generation, requested_at=self._clock(), previous=previous)
        handle.location_task = asyncio.create_task(self._locate(handle, generation))
        return generation

    def _is_current(self, handle: SessionHandle, generation: int) -> bool:
        return not handle.is_closed and handle.location_generation == generation

    async def _locate(self, handle: SessionHandle, generation: int) -> None:
        request = LocationRequest(issued_at=self._clock(), timeout_seconds=self._location_timeout)
        try:
            fix = await asyncio.wait_for(self._locator.current_position(request), timeout=self._location_timeout)
            if fix.observed_at < handle.started_at:
                raise LocationUnavailable("Vị trí được lấy từ bộ nhớ đệm, không dùng lại")
        except asyncio.TimeoutError:
            self._location_failed(handle, generation, LocationTimeout("Hết thời gian chờ định vị"))
            return
        except (LocationError, OSError) as exc:
            error = exc if isinstance(exc, LocationError) else LocationUnavailable(str(exc))
            self._location_failed(handle, generation, error)
            return

        if not self._is_current(handle, generation):
            return
        handle.location = Fixed(fix=fix, generation=generation)
        handle.location_error = None

        address = await self._geocoder.resolve_async(fix.latitude, fix.longitude)
        if not self._is_current(handle, generation):
            logger.debug("Session %s dropped address of superseded request %d", handle.session_id, generation)
            return
        handle.location = Refining(fix=fix, address=address, generation=generation)

    def _location_failed(self, handle: SessionHandle, generation: int, error: LocationError) -> None:
        if not self._is_current(handle, generation):
            return

        logger.warning("Session %s location failed: %s", handle.session_id, error)
        handle.location_error = error
        current = handle.location
        previous = current.previous if isinstance(current, Resolving) else None
        handle.location = replace(previous, stale=True) if previous is not None else NoFix()
