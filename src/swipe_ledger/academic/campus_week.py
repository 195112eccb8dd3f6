"""Campus week numbering.

Weeks run Monday-Sunday. Week 1 is the week containing the first day of
the fall semester. The whole winter break counts as one week number no
matter how many calendar weeks it spans. Spring weeks resume on the first
Monday on or after the day after the break; the days between the break
and that Monday belong to the first spring week.

Example with the default 2025-26 calendar:
    Fall starts 2025-09-01 -> weeks 1-16
    Winter break 2025-12-16 to 2026-01-28 -> week 17
    2026-01-29 onward -> weeks 18, 19, ...
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from swipe_ledger import config

ONE_WEEK = timedelta(days=7)


def _parse_date(value: Union[str, date], label: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be a YYYY-MM-DD date, got {value!r}") from exc


def _monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


@dataclass(frozen=True)
class CampusWeekDateRange:
    """Inclusive date range of one campus week."""

    week_number: int
    start_date: date
    end_date: date


class AcademicCalendar:
    """Maps calendar dates to campus week numbers and back."""

    def __init__(
        self,
        fall_first_day: Union[str, date] = config.FALL_SEMESTER_FIRST_DAY,
        winter_break_first_day: Union[str, date] = config.WINTER_BREAK_FIRST_DAY,
        winter_break_last_day: Union[str, date] = config.WINTER_BREAK_LAST_DAY
    ):
        """
        Initialize the calendar.

        Raises:
            ValueError: if a date is malformed or the break is out of order
        """
        self.semester_start = _parse_date(fall_first_day, "fall_first_day")
        self.winter_start = _parse_date(winter_break_first_day, "winter_break_first_day")
        self.winter_end = _parse_date(winter_break_last_day, "winter_break_last_day")

        if self.winter_start <= self.semester_start:
            raise ValueError(
                f"Winter break ({self.winter_start}) must start after the fall semester ({self.semester_start})"
            )
        if self.winter_end < self.winter_start:
            raise ValueError(
                f"Winter break ends ({self.winter_end}) before it starts ({self.winter_start})"
            )

        self.week_1_monday = _monday_of(self.semester_start)

        day_after_break = self.winter_end + timedelta(days=1)
        days_until_monday = (7 - day_after_break.weekday()) % 7
        self.first_spring_monday = day_after_break + timedelta(days=days_until_monday)

        day_before_break = self.winter_start - timedelta(days=1)
        self.winter_break_week_number = (day_before_break - self.week_1_monday).days // 7 + 2

    def date_to_campus_week(self, value: Union[date, datetime]) -> Optional[int]:
        """
        Get the campus week number for a date.

        Aware datetimes are converted to UTC before taking the date part.

        Returns:
            Campus week number (1-based), or None before week 1
        """
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            value = value.date()

        if value < self.week_1_monday:
            return None

        if self.winter_start <= value <= self.winter_end:
            return self.winter_break_week_number

        if value < self.winter_start:
            return (value - self.week_1_monday).days // 7 + 1

        if value < self.first_spring_monday:
            return self.winter_break_week_number + 1

        return self.winter_break_week_number + 1 + (value - self.first_spring_monday).days // 7

    def campus_week_to_date_range(self, week_number: int) -> CampusWeekDateRange:
        """
        Convert a campus week number to its inclusive date range.

        Use the dates as start/end filters when pulling logs for a week.

        Raises:
            ValueError: if week_number is less than 1
        """
        if week_number < 1:
            raise ValueError(f"Campus week number must be 1 or greater, got {week_number}")

        if week_number < self.winter_break_week_number:
            start = self.week_1_monday + (week_number - 1) * ONE_WEEK
        elif week_number == self.winter_break_week_number:
            return CampusWeekDateRange(week_number, self.winter_start, self.winter_end)
        else:
            weeks_after_break = week_number - self.winter_break_week_number - 1
            start = self.first_spring_monday + weeks_after_break * ONE_WEEK

        return CampusWeekDateRange(week_number, start, start + timedelta(days=6))


def date_to_campus_week(value: Union[date, datetime], calendar: Optional[AcademicCalendar] = None) -> Optional[int]:
    return (calendar or AcademicCalendar()).date_to_campus_week(value)


def campus_week_to_date_range(week_number: int, calendar: Optional[AcademicCalendar] = None) -> CampusWeekDateRange:
    return (calendar or AcademicCalendar()).campus_week_to_date_range(week_number)
