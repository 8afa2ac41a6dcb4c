"""Calendar helpers for billing periods. Periods are first-of-month UTC dates."""
from __future__ import annotations

import calendar
from datetime import date, datetime, timezone as dt_timezone
from typing import Union

from django.utils import timezone

DateLike = Union[date, datetime]


def month_start(value: DateLike) -> date:
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = value.astimezone(dt_timezone.utc)
        value = value.date()
    return value.replace(day=1)


def current_period() -> date:
    return month_start(timezone.now())


def add_months(value: DateLike, months: int) -> DateLike:
    """Shift ``value`` by ``months``, clamping the day to the target month length."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def previous_period(reference: DateLike | None = None) -> date:
    anchor = month_start(reference if reference is not None else timezone.now())
    return add_months(anchor, -1)


def period_bounds(period: date) -> tuple[datetime, datetime]:
    """Aware UTC datetimes ``[start, end)`` covering the month of ``period``."""

    start = month_start(period)
    end = add_months(start, 1)
    return (
        datetime(start.year, start.month, start.day, tzinfo=dt_timezone.utc),
        datetime(end.year, end.month, end.day, tzinfo=dt_timezone.utc),
    )


def parse_period(raw: str) -> date:
    """Accept ``YYYY-MM`` or ``YYYY-MM-DD`` and normalise to the first of the month."""

    text = (raw or "").strip()
    try:
        if len(text) == 7:
            return datetime.strptime(text, "%Y-%m").date()
        return month_start(datetime.strptime(text, "%Y-%m-%d").date())
    except ValueError as exc:
        raise ValueError(f"Invalid period '{raw}'; expected YYYY-MM.") from exc
