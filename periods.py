from datetime import date, timedelta
from typing import Optional

from schemas import DateRange


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: date,
) -> DateRange:
    """
    Date range for a dashboard period preset.

    A custom period with a missing bound yields an incomplete range, which
    the finance services treat as not runnable yet.
    """
    if not period:
        period = "custom" if (start or end) else "this_month"
    if period == "all":
        return DateRange(date_from=date(1970, 1, 1), date_to=today)
    if period == "last_7_days":
        return DateRange(date_from=today - timedelta(days=6), date_to=today)
    if period == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        return DateRange(
            date_from=last_month_end.replace(day=1), date_to=last_month_end
        )
    if period == "custom":
        return DateRange(date_from=start or None, date_to=end or None)
    if period != "this_month":
        raise ValueError(f"Unknown period: {period}")

    first = today.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return DateRange(date_from=first, date_to=next_month - date.resolution)
