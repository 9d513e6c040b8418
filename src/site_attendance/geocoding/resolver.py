from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests

from ..common.datetime_utils import now_local
from ..core.constants import (
    COORDINATE_DECIMALS,
    DEFAULT_GEOCODE_TIMEOUT_SECONDS,
    DEFAULT_GEOCODER_USER_AGENT,
    GEOCODE_ZOOM,
    NOMINATIM_REVERSE_URL,
)
from ..core.enums import AddressSource
from ..core.exceptions import GeocodeFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddressResult:
    display: str
    source: AddressSource
    latitude: float
    longitude: float
    resolved_at: datetime
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == AddressSource.FALLBACK


def fallback_address(latitude: float, longitude: float) -> str:
    """Deterministic display string built from the coordinates alone."""
    return f"Lat: {latitude:.{COORDINATE_DECIMALS}f}, Long: {longitude:.{COORDINATE_DECIMALS}f}"


class GeocodeResolver:
    """Reverse geocoding with graceful degradation.

    ``resolve`` never raises: any transport or payload problem turns into the
    coordinate fallback, so a location fix always has *some* address.
    Ordering between concurrent calls is the caller's concern (capture
    sessions tag each call with a generation number).
    """

    def __init__(
        self,
        *,
        url: str = NOMINATIM_REVERSE_URL,
        user_agent: str = DEFAULT_GEOCODER_USER_AGENT,
        timeout: float = DEFAULT_GEOCODE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._url = url
        self._timeout = float(timeout)
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

    def _fetch(self, latitude: float, longitude: float) -> str:
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "zoom": GEOCODE_ZOOM,
            "addressdetails": 1,
        }
        with self._session.get(self._url, params=params, timeout=self._timeout) as response:
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, dict):
            raise GeocodeFailure("unexpected payload type")
        if data.get("error"):
            raise GeocodeFailure(str(data["error"]))
        display = data.get("display_name")
        if not isinstance(display, str) or not display.strip():
            raise GeocodeFailure("missing display_name")
        return display.strip()

    def resolve(self, latitude: float, longitude: float) -> AddressResult:
        try:
            display = self._fetch(latitude, longitude)
        except (requests.RequestException, ValueError, GeocodeFailure) as exc:
            logger.warning("Reverse geocode failed for (%.5f, %.5f): %s", latitude, longitude, exc)
            return AddressResult(
                display=fallback_address(latitude, longitude),
                source=AddressSource.FALLBACK,
                latitude=latitude,
                longitude=longitude,
                resolved_at=now_local(),
                error=str(exc) or exc.__class__.__name__,
            )

        return AddressResult(
            display=display,
            source=AddressSource.GEOCODER,
            latitude=latitude,
            longitude=longitude,
            resolved_at=now_local(),
        )

    async def resolve_async(self, latitude: float, longitude: float) -> AddressResult:
        return await asyncio.to_thread(self.resolve, latitude, longitude)

    def close(self) -> None:
        self._session.close()
