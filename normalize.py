import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from zoneinfo import ZoneInfo


def to_number(value: object) -> float:
    """
    Coerce a backend value to a float. Null, missing and non-numeric values
    become 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        clean = value.strip().replace("\u00a0", "").replace(" ", "")
        clean = clean.replace(",", ".")
        if not clean:
            return 0.0
        try:
            number = float(Decimal(clean))
        except (InvalidOperation, ValueError):
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def local_day(value: object, tz: str) -> Optional[date]:
    """
    Calendar day of ``value`` in timezone ``tz``.

    Plain dates pass through. Aware datetimes are converted to ``tz``; naive
    datetimes are taken as UTC. Strings are parsed as ISO dates or datetimes.
    """
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if len(raw) == 10:
            return date.fromisoformat(raw)
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(ZoneInfo(tz)).date()
    if isinstance(value, date):
        return value
    raise ValueError(f"Unsupported date value: {value!r}")


def day_string(value: object, tz: str) -> str:
    day = local_day(value, tz)
    if day is None:
        raise ValueError("Date is required")
    return day.isoformat()


def today_in(tz: str) -> date:
    return datetime.now(ZoneInfo(tz)).date()
