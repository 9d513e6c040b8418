"""Capture session state.

The main phase and the location sub-state are tagged variants: each state
carries exactly the data that exists in it (a ``Ready`` session holds the
stream, a ``Captured`` one holds the photo), so "capture before the stream is
ready" has nothing to capture from.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from ..attendance.model import LocationSnapshot, PhotoRef
from ..core.enums import EventKind
from ..core.exceptions import LocationError
from ..geocoding.resolver import AddressResult
from .devices import CameraStream, LocationFix


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Acquiring:
    pass


@dataclass(frozen=True)
class Ready:
    stream: CameraStream = field(repr=False)


@dataclass(frozen=True)
class Captured:
    photo: PhotoRef


@dataclass(frozen=True)
class Closed:
    reason: str = "ended"


SessionPhase = Union[Idle, Acquiring, Ready, Captured, Closed]


@dataclass(frozen=True)
class NoFix:
    pass


@dataclass(frozen=True)
class Fixed:
    fix: LocationFix
    generation: int
    stale: bool = False


@dataclass(frozen=True)
class Refining:
    fix: LocationFix
    address: AddressResult
    generation: int
    stale: bool = False


@dataclass(frozen=True)
class Resolving:
    generation: int
    requested_at: datetime
    previous: Optional[Union[Fixed, Refining]] = None


LocationPhase = Union[NoFix, Resolving, Fixed, Refining]


@dataclass(eq=False)
class SessionHandle:
    session_id: str
    subject_id: str
    kind: EventKind
    started_at: datetime
    phase: SessionPhase = field(default_factory=Idle)
    location: LocationPhase = field(default_factory=NoFix)
    location_generation: int = 0
    location_error: Optional[LocationError] = None
    location_task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)

    @property
    def is_closed(self) -> bool:
        return isinstance(self.phase, Closed)

    @property
    def photo(self) -> Optional[PhotoRef]:
        if isinstance(self.phase, Captured):
            return self.phase.photo
        return None

    def location_snapshot(self) -> LocationSnapshot:
        state = self.location
        error = str(self.location_error) if self.location_error else None

        stale = False
        if isinstance(state, Resolving):
            if state.previous is None:
                return LocationSnapshot(error=error)
            # Refresh in flight: the previous fix of this session is best effort.
            state, stale = state.previous, True

        if isinstance(state, NoFix):
            return LocationSnapshot(error=error)

        fix = state.fix
        address = state.address if isinstance(state, Refining) else None
        return LocationSnapshot(
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy_m=fix.accuracy_m,
            address=address.display if address else None,
            address_is_fallback=bool(address and address.is_fallback),
            observed_at=fix.observed_at,
            resolved_at=address.resolved_at if address else None,
            stale=stale or state.stale,
            error=error,
        )
