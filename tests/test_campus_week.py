"""Unit tests for campus week numbering."""

import pytest
from datetime import date, datetime, timezone
from swipe_ledger.academic.campus_week import (
    AcademicCalendar,
    campus_week_to_date_range,
    date_to_campus_week,
)


@pytest.fixture
def calendar():
    """2025-26 academic calendar."""
    return AcademicCalendar('2025-09-01', '2025-12-16', '2026-01-28')


def test_winter_break_week_number(calendar):
    """Test the winter break follows the last fall week."""
    assert calendar.week_1_monday == date(2025, 9, 1)
    assert calendar.winter_break_week_number == 17
    assert calendar.first_spring_monday == date(2026, 2, 2)


@pytest.mark.parametrize('day, week', [
    (date(2025, 8, 31), None),
    (date(2025, 9, 1), 1),
    (date(2025, 9, 7), 1),
    (date(2025, 9, 8), 2),
    (date(2025, 12, 15), 16),
    (date(2025, 12, 16), 17),
    (date(2026, 1, 1), 17),
    (date(2026, 1, 28), 17),
    (date(2026, 1, 30), 18),
    (date(2026, 2, 2), 18),
    (date(2026, 2, 8), 18),
    (date(2026, 2, 9), 19),
])
def test_date_to_campus_week(calendar, day, week):
    """Test dates across fall, winter break and spring."""
    assert calendar.date_to_campus_week(day) == week


def test_week_1_contains_mid_week_semester_start():
    """Test week 1 starts on the Monday before a mid-week first day."""
    calendar = AcademicCalendar('2025-09-03', '2025-12-16', '2026-01-28')

    assert calendar.date_to_campus_week(date(2025, 9, 1)) == 1
    assert calendar.date_to_campus_week(date(2025, 8, 31)) is None


def test_aware_datetime_uses_utc_date(calendar):
    """Test aware datetimes are bucketed by their UTC date."""
    late_sunday = datetime(2025, 9, 7, 23, 30, tzinfo=timezone.utc)

    assert calendar.date_to_campus_week(late_sunday) == 1
    assert calendar.date_to_campus_week(datetime(2025, 9, 8, 0, 30)) == 2


def test_campus_week_to_date_range(calendar):
    """Test week numbers map back to inclusive ranges."""
    week_1 = calendar.campus_week_to_date_range(1)
    winter = calendar.campus_week_to_date_range(17)
    spring = calendar.campus_week_to_date_range(18)
    later = calendar.campus_week_to_date_range(20)

    assert (week_1.start_date, week_1.end_date) == (date(2025, 9, 1), date(2025, 9, 7))
    assert (winter.start_date, winter.end_date) == (date(2025, 12, 16), date(2026, 1, 28))
    assert (spring.start_date, spring.end_date) == (date(2026, 2, 2), date(2026, 2, 8))
    assert (later.start_date, later.end_date) == (date(2026, 2, 16), date(2026, 2, 22))


@pytest.mark.parametrize('week', [0, -3])
def test_non_positive_week_fails_fast(calendar, week):
    """Test week numbers below 1 are rejected."""
    with pytest.raises(ValueError):
        calendar.campus_week_to_date_range(week)


def test_invalid_calendar_configuration():
    """Test malformed or out-of-order calendar dates are rejected."""
    with pytest.raises(ValueError):
        AcademicCalendar('2025-09-xx', '2025-12-16', '2026-01-28')

    with pytest.raises(ValueError):
        AcademicCalendar('2025-09-01', '2026-01-28', '2025-12-16')

    with pytest.raises(ValueError):
        AcademicCalendar('2025-09-01', '2025-08-01', '2025-08-20')


def test_module_functions_use_default_calendar():
    """Test module-level helpers accept an explicit calendar."""
    calendar = AcademicCalendar('2025-09-01', '2025-12-16', '2026-01-28')

    assert date_to_campus_week(date(2025, 9, 8), calendar) == 2
    assert campus_week_to_date_range(2, calendar).start_date == date(2025, 9, 8)
