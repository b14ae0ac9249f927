"""Boundary validation - runs before any store is touched"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Tuple

from cashpoint_gateway.domain.exceptions import InvalidAmountError, InvalidLocationError, MissingFieldError

PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
PIN_PATTERN = re.compile(r"^\d{4}$")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(values: Mapping[str, Any]) -> None:
    """Raise MissingFieldError naming every blank entry"""
    missing = [name for name, value in values.items() if is_blank(value)]
    if missing:
        raise MissingFieldError(missing)


def parse_decimal(raw: Any) -> Optional[Decimal]:
    """Decimal from str/int/float/Decimal, None when unparsable or not finite"""
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def parse_amount(raw: Any, minimum: Decimal) -> Decimal:
    amount = parse_decimal(raw)
    if amount is None:
        raise InvalidAmountError("Amount must be numeric")
    if amount < minimum:
        raise InvalidAmountError(f"Minimum amount is {minimum:.2f}")
    return amount


def parse_coordinates(latitude: Any, longitude: Any) -> Tuple[float, float]:
    if is_blank(latitude) or is_blank(longitude):
        raise InvalidLocationError("Location coordinates required")

    lat = parse_decimal(latitude)
    lon = parse_decimal(longitude)
    if lat is None or lon is None:
        raise InvalidLocationError("Location coordinates must be decimal degrees")
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        raise InvalidLocationError("Location coordinates out of range")
    return float(lat), float(lon)


def parse_radius(raw: Any, default_km: float) -> float:
    if is_blank(raw):
        return default_km
    radius = parse_decimal(raw)
    if radius is None or radius <= 0:
        raise InvalidLocationError("Search radius must be a positive number of kilometers")
    return float(radius)


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_PATTERN.match(value))


def is_valid_pin(value: str) -> bool:
    return bool(PIN_PATTERN.match(value))
