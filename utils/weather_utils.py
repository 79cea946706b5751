"""
Unit conversion and parsing helpers shared by the fetchers
"""
import logging
import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

logger = logging.getLogger(__name__)

CARDINAL_DIRECTIONS = [
    'N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
    'S', 'SSW', 'SW', 'WSW', 'W', 'WNW', 'NW', 'NNW',
]

MPS_TO_MPH = 2.237
METERS_TO_FEET = 3.28084


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def celsius_to_fahrenheit(celsius: float) -> int:
    return round_half_up(celsius * 9 / 5 + 32)


def degrees_to_cardinal(degrees: float) -> str:
    index = round_half_up(degrees / 22.5) % 16
    return CARDINAL_DIRECTIONS[index]


def mps_to_mph(speed: float) -> int:
    return round_half_up(speed * MPS_TO_MPH)


def pascals_to_millibars(pressure: float) -> int:
    return round_half_up(pressure / 100)


def meters_to_feet(meters: float) -> int:
    return round_half_up(meters * METERS_TO_FEET)


def to_decimal(value, places: int) -> Optional[Decimal]:
    """Fixed-point conversion for NUMERIC columns"""
    if value is None:
        return None
    try:
        return Decimal(str(value)).quantize(Decimal(1).scaleb(-places))
    except (InvalidOperation, ValueError):
        return None


def parse_datetime(dt_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string; naive values are taken as UTC"""
    if not dt_string:
        return None

    try:
        if dt_string.endswith('Z'):
            dt_string = dt_string[:-1] + '+00:00'
        parsed = datetime.fromisoformat(dt_string)
    except (TypeError, ValueError) as e:
        logger.warning(f"Could not parse datetime '{dt_string}': {e}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
