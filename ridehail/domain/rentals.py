"""
Rental duration and price calculation.

Billing units are whole hours or whole days.  Elapsed time is always
rounded *up*, with a floor of one unit, and the total is a whole number
of currency units (the default currency has no minor unit).
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from .enums import DurationType
from .errors import InvalidRentalWindow

DateLike = Union[datetime, str, None]

_UNIT_SECONDS = {
    DurationType.HOURLY: 60 * 60,
    DurationType.DAILY: 60 * 60 * 24,
}


def parse_instant(value: DateLike) -> Optional[datetime]:
    """Parse a datetime or ISO-8601 string; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def rental_duration(
    start: DateLike, end: DateLike, duration_type: DurationType
) -> int:
    """Number of billable units between *start* and *end* (0 if invalid)."""
    start_at, end_at = parse_instant(start), parse_instant(end)
    if start_at is None or end_at is None:
        return 0

    elapsed = (end_at - start_at).total_seconds()
    if elapsed <= 0:
        return 0

    units = math.ceil(elapsed / _UNIT_SECONDS[DurationType(duration_type)])
    return max(1, units)


def rental_price(unit_rate: float, duration: int) -> int:
    if duration <= 0:
        return 0
    total = Decimal(str(unit_rate)) * duration
    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_rental_window(
    start: DateLike, end: DateLike, now: Optional[datetime] = None
) -> tuple[datetime, datetime]:
    """Return the parsed window or raise ``InvalidRentalWindow``."""
    if not start or not end:
        raise InvalidRentalWindow("Please select both start and end dates")

    start_at, end_at = parse_instant(start), parse_instant(end)
    if start_at is None or end_at is None:
        raise InvalidRentalWindow("Invalid date format")

    now = parse_instant(now) or datetime.now(timezone.utc)
    if start_at < now:
        raise InvalidRentalWindow("Start date cannot be in the past")
    if end_at <= start_at:
        raise InvalidRentalWindow("End date must be after start date")
    return start_at, end_at


def format_duration(duration: int, duration_type: DurationType) -> str:
    if duration == 0:
        return "Invalid duration"
    unit = "hour" if DurationType(duration_type) is DurationType.HOURLY else "day"
    return f"{duration} {unit}{'' if duration == 1 else 's'}"
