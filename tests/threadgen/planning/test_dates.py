"""Tests for date helpers.

Tests cover:
- Business-hour adjustment for weekends, early mornings and evenings
- Date distribution over a window
- Clamped interpolation
"""

from __future__ import annotations

import random
from datetime import datetime

import pytest

from src.threadgen.planning.dates import (
    adjust_to_business_hours,
    distribute_dates_for_thread,
    interpolate_date_in_range,
)


class TestAdjustToBusinessHours:
    """Tests for adjust_to_business_hours()."""

    def test_weekday_working_hours_unchanged(self) -> None:
        dt = datetime(2026, 1, 6, 14, 30)
        assert adjust_to_business_hours(dt, random.Random(1)) == dt

    def test_weekend_rolls_to_monday_morning(self) -> None:
        saturday = datetime(2026, 1, 10, 14, 0)
        assert adjust_to_business_hours(saturday, random.Random(1)) == datetime(
            2026, 1, 12, 9, 0
        )

    def test_early_morning_moves_to_eight(self) -> None:
        result = adjust_to_business_hours(datetime(2026, 1, 6, 6, 30), random.Random(2))
        assert result.date() == datetime(2026, 1, 6).date()
        assert result.hour == 8

    def test_friday_evening_moves_to_monday(self) -> None:
        result = adjust_to_business_hours(datetime(2026, 1, 9, 20, 0), random.Random(3))
        assert result.date() == datetime(2026, 1, 12).date()
        assert result.hour == 8


class TestDistributeDates:
    """Tests for distribute_dates_for_thread()."""

    def test_empty(self) -> None:
        start = datetime(2026, 1, 5, 9)
        assert distribute_dates_for_thread(0, start, start, random.Random(0)) == []

    def test_single(self) -> None:
        start = datetime(2026, 1, 5, 9)
        assert distribute_dates_for_thread(1, start, start, random.Random(0)) == [start]

    @pytest.mark.parametrize("seed", range(5))
    def test_count_and_order(self, seed: int) -> None:
        start, end = datetime(2026, 1, 5, 9), datetime(2026, 2, 5, 17)
        dates = distribute_dates_for_thread(15, start, end, random.Random(seed))
        assert len(dates) == 15
        assert dates == sorted(dates)
        assert dates[0] >= start


class TestInterpolate:
    """Tests for interpolate_date_in_range()."""

    def test_midpoint(self) -> None:
        start, end = datetime(2026, 1, 1), datetime(2026, 1, 3)
        assert interpolate_date_in_range(start, end, 0.5) == datetime(2026, 1, 2)

    @pytest.mark.parametrize(("fraction", "expected_day"), [(-1.0, 1), (2.0, 3)])
    def test_clamped(self, fraction: float, expected_day: int) -> None:
        start, end = datetime(2026, 1, 1), datetime(2026, 1, 3)
        assert interpolate_date_in_range(start, end, fraction).day == expected_day
