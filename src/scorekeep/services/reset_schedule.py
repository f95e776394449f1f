# src/scorekeep/services/reset_schedule.py

"""Period boundary math for leaderboards that reset on a schedule.

All timestamps are UTC. A period starts at ``period_start`` and ends at the
next boundary, which is also the start of the following period:

- daily: the next ``reset_hour`` after the period start
- weekly: seven days after the period start, at ``reset_hour``
- monthly: the same day-of-month one month later at ``reset_hour``,
  clamped to the last day of shorter months
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from scorekeep.db.models import as_utc
from scorekeep.schemas.common import ResetSchedule


def _at_hour(moment: datetime, hour: int) -> datetime:
    return moment.replace(hour=hour, minute=0, second=0, microsecond=0)


def _add_month_clamped(moment: datetime, day: int) -> datetime:
    year, month = moment.year, moment.month + 1
    if month > 12:
        year, month = year + 1, 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(day, last_day))


def next_period_boundary(
    schedule: ResetSchedule | str, reset_hour: int, period_start: datetime
) -> datetime:
    """Return when the period beginning at ``period_start`` ends."""
    schedule = ResetSchedule(schedule)
    start = as_utc(period_start)

    if schedule is ResetSchedule.DAILY:
        boundary = _at_hour(start, reset_hour)
        if boundary <= start:
            boundary += timedelta(days=1)
        return boundary

    if schedule is ResetSchedule.WEEKLY:
        return _at_hour(start + timedelta(days=7), reset_hour)

    if schedule is ResetSchedule.MONTHLY:
        return _at_hour(_add_month_clamped(start, start.day), reset_hour)

    raise ValueError(f"Schedule '{schedule.value}' has no period boundaries")


def advance_periods(
    schedule: ResetSchedule | str,
    reset_hour: int,
    period_start: datetime,
    now: datetime,
) -> tuple[int, datetime]:
    """Skip every period that ended by ``now``.

    Returns the number of periods elapsed and the start of the period that
    contains ``now``. A service left dormant for three days on a daily
    schedule gets ``(3, <most recent boundary>)``.
    """
    if ResetSchedule(schedule) is ResetSchedule.NONE:
        return 0, as_utc(period_start)

    now = as_utc(now)
    start = as_utc(period_start)
    elapsed = 0
    boundary = next_period_boundary(schedule, reset_hour, start)
    while now >= boundary:
        elapsed += 1
        start = boundary
        boundary = next_period_boundary(schedule, reset_hour, start)
    return elapsed, start


def period_start_for(
    schedule: ResetSchedule | str, reset_hour: int, reference: datetime
) -> datetime:
    """Start of the period containing ``reference``, used for new leaderboards.

    Weekly periods are anchored on Monday and monthly periods on the first
    day of the month. Schedule 'none' uses the reference itself.
    """
    schedule = ResetSchedule(schedule)
    ref = as_utc(reference)

    if schedule is ResetSchedule.NONE:
        return ref

    if schedule is ResetSchedule.DAILY:
        start = _at_hour(ref, reset_hour)
        if ref < start:
            start -= timedelta(days=1)
        return start

    if schedule is ResetSchedule.WEEKLY:
        start = _at_hour(ref - timedelta(days=ref.weekday()), reset_hour)
        if ref < start:
            start -= timedelta(days=7)
        return start

    start = _at_hour(ref.replace(day=1), reset_hour)
    if ref < start:
        year, month = (ref.year - 1, 12) if ref.month == 1 else (ref.year, ref.month - 1)
        start = start.replace(year=year, month=month)
    return start
