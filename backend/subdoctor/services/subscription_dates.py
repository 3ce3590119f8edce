"""Billing-period arithmetic shared by the analyzers."""

import calendar as cal
import math
from datetime import datetime, timedelta

from subdoctor.models.subscription import BillingPeriod

DAY = timedelta(days=1)
KNOWN_PERIODS = frozenset(p.value for p in BillingPeriod)


def _add_months(dt: datetime, months: int) -> datetime:
    """Add months to a datetime, clamping to last day of month."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    max_day = cal.monthrange(year, month)[1]
    day = min(dt.day, max_day)
    return dt.replace(year=year, month=month, day=day)


def add_interval(dt: datetime, period: str, interval: int = 1) -> datetime:
    """Add ``interval`` billing periods to a datetime using calendar arithmetic.

    An unknown period is a zero interval and returns ``dt`` unchanged.
    """
    if period == BillingPeriod.DAY.value:
        return dt + timedelta(days=interval)
    elif period == BillingPeriod.WEEK.value:
        return dt + timedelta(weeks=interval)
    elif period == BillingPeriod.MONTH.value:
        return _add_months(dt, interval)
    elif period == BillingPeriod.YEAR.value:
        return _add_months(dt, 12 * interval)
    return dt


def project_renewal_dates(
    start: datetime,
    period: str,
    interval: int,
    end: datetime | None = None,
    count: int = 12,
) -> list[datetime]:
    """Project up to ``count`` renewal dates after ``start``.

    Each date is computed from the start date (start + k intervals) so a
    start on the 31st does not drift to the 28th after February. Projection
    stops at the first date past ``end``; a date equal to ``end`` is kept.
    Unknown periods project nothing.
    """
    dates: list[datetime] = []
    if period not in KNOWN_PERIODS or interval <= 0:
        return dates
    for k in range(1, count + 1):
        renewal = add_interval(start, period, interval * k)
        if end is not None and renewal > end:
            break
        dates.append(renewal)
    return dates


def count_intervals(start: datetime, end: datetime, period: str, interval: int = 1) -> int:
    """Number of whole billing intervals between ``start`` and ``end``."""
    if end <= start or period not in KNOWN_PERIODS or interval <= 0:
        return 0
    count = 0
    while add_interval(start, period, interval * (count + 1)) <= end:
        count += 1
    return count


def days_until(target: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``target``, rounded up; negative when in the past."""
    return math.ceil((target - now) / DAY)
