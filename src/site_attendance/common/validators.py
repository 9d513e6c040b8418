from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import MalformedLocation, ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} không hợp lệ")
    return str(value).strip()


def coerce_coordinate(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedLocation(f"{field_name} không hợp lệ") from None


def require_coordinates(latitude: Optional[float], longitude: Optional[float]) -> tuple[float, float]:
    if latitude is None or longitude is None:
        raise MalformedLocation("Vị trí phải có đủ vĩ độ và kinh độ")
    if not (-90 <= latitude <= 90):
        raise MalformedLocation("Vĩ độ phải nằm trong khoảng -90 đến 90")
    if not (-180 <= longitude <= 180):
        raise MalformedLocation("Kinh độ phải nằm trong khoảng -180 đến 180")
    return latitude, longitude
