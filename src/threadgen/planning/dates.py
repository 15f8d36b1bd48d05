"""Date helpers for spreading emails over a window.

Functions:
    adjust_to_business_hours: Move a datetime into weekday working hours.
    distribute_dates_for_thread: Spread n send times over a window.
    interpolate_date_in_range: Linear interpolation within a window.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta

BUSINESS_DAY_START_HOUR = 8
BUSINESS_DAY_END_HOUR = 19
WEEKEND_ROLL_HOUR = 9


def _is_weekend(dt: datetime) -> bool:
    return dt.weekday() >= 5


def _midnight(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def adjust_to_business_hours(dt: datetime, rng: random.Random) -> datetime:
    """Move ``dt`` onto a weekday between 08:00 and 19:00.

    Weekend times roll forward to 09:00 on the next weekday. Early-morning
    times move to 08:mm and evening times to 08:mm on the next weekday,
    where mm is drawn from ``rng``.
    """
    while _is_weekend(dt):
        dt = _midnight(dt + timedelta(days=1)) + timedelta(hours=WEEKEND_ROLL_HOUR)

    if dt.hour < BUSINESS_DAY_START_HOUR:
        dt = _midnight(dt) + timedelta(
            hours=BUSINESS_DAY_START_HOUR, minutes=rng.randrange(0, 60)
        )
    elif dt.hour >= BUSINESS_DAY_END_HOUR:
        dt = _midnight(dt) + timedelta(days=1)
        while _is_weekend(dt):
            dt += timedelta(days=1)
        dt += timedelta(hours=BUSINESS_DAY_START_HOUR, minutes=rng.randrange(0, 60))

    return dt


def distribute_dates_for_thread(
    email_count: int,
    start: datetime,
    end: datetime,
    rng: random.Random,
) -> list[datetime]:
    """Spread ``email_count`` send times across ``[start, end]``.

    Gaps vary between 0.3x and 1.7x the average and never run past ``end``.
    About 90% of dates are moved into business hours. The result is
    non-decreasing so that no reply predates the email it answers.
    """
    if email_count <= 0:
        return []
    if email_count == 1:
        return [adjust_to_business_hours(start, rng)]

    total_minutes = (end - start).total_seconds() / 60
    average_gap = total_minutes / (email_count - 1)

    dates: list[datetime] = []
    current = start
    for i in range(email_count):
        adjusted = adjust_to_business_hours(current, rng) if rng.random() < 0.9 else current
        dates.append(adjusted)

        if i < email_count - 1:
            gap = average_gap * (0.3 + rng.random() * 1.4)
            current = min(current + timedelta(minutes=gap), end)

    for i in range(1, len(dates)):
        if dates[i] < dates[i - 1]:
            dates[i] = dates[i - 1]
    return dates


def interpolate_date_in_range(start: datetime, end: datetime, fraction: float) -> datetime:
    """Return the point ``fraction`` of the way from ``start`` to ``end``.

    The fraction is clamped to ``[0, 1]``.
    """
    fraction = min(1.0, max(0.0, fraction))
    return start + (end - start) * fraction
