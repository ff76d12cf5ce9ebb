"""
SpendWatch DZD - Date Logic Module.

This module provides the calendar windows used by budget and analytics
calculations: month boundaries, day boundaries, the rolling week and the
previous comparison window.

Every method that depends on "now" takes the reference time as an
argument, so results are deterministic in tests.

Classes:
    DateManager: Manages all date-related calculations.
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple


class DateManager:
    """
    Manages calendar windows for spend aggregation.

    Example:
        >>> dm = DateManager()
        >>> dm.get_month_bounds(2024, 2)
        (datetime.datetime(2024, 2, 1, 0, 0), datetime.datetime(2024, 2, 29, 23, 59, 59, 999999))
        >>> dm.get_previous_window(date(2024, 10, 1), date(2024, 10, 31))
        (datetime.date(2024, 9, 1), datetime.date(2024, 9, 30))
    """

    WEEK_DAYS = 7

    def is_leap_year(self, year: int) -> bool:
        """
        Determines if the specified year is a leap year.

        Args:
            year: Four-digit year to check.

        Returns:
            True if the year is a leap year, False otherwise.
        """
        return calendar.isleap(year)

    def get_days_in_month(self, year: int, month: int) -> int:
        """
        Returns the total number of days in the specified month.

        Args:
            year: Four-digit year.
            month: Month number (1-12).

        Returns:
            Number of days in the specified month.

        Raises:
            ValueError: If month is not in range 1-12.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        return calendar.monthrange(year, month)[1]

    def get_month_start(self, year: int, month: int) -> date:
        """Returns the first calendar day of the month."""
        self.get_days_in_month(year, month)
        return date(year, month, 1)

    def get_month_bounds(self, year: int, month: int) -> Tuple[datetime, datetime]:
        """
        Returns the inclusive datetime bounds of a month.

        Args:
            year: Four-digit year.
            month: Month number (1-12).

        Returns:
            Tuple of (first instant of day 1, last instant of the last day).
        """
        last_day = self.get_days_in_month(year, month)
        start = datetime(year, month, 1)
        end = datetime.combine(date(year, month, last_day), time.max)
        return start, end

    def get_day_bounds(self, day: date) -> Tuple[datetime, datetime]:
        """Returns the first and last instant of a calendar day."""
        return datetime.combine(day, time.min), datetime.combine(day, time.max)

    def get_range_bounds(self, start: date, end: date) -> Tuple[datetime, datetime]:
        """
        Returns inclusive datetime bounds covering whole days start..end.

        Raises:
            ValueError: If end is before start.
        """
        if end < start:
            raise ValueError(f"Range end {end} is before range start {start}")
        return datetime.combine(start, time.min), datetime.combine(end, time.max)

    def get_start_of_day(self, now: datetime) -> datetime:
        """Returns midnight of the reference day."""
        return datetime.combine(now.date(), time.min)

    def get_week_start(self, now: datetime) -> datetime:
        """Returns midnight seven days before the reference day."""
        return self.get_start_of_day(now) - timedelta(days=self.WEEK_DAYS)

    def get_previous_window(self, start: date, end: date) -> Tuple[date, date]:
        """
        Returns the window immediately preceding [start, end].

        Both ends are inclusive, so a window of n days maps onto the n
        days ending the day before start; a single day maps onto the day
        before it.

        Args:
            start: First day of the current window.
            end: Last day of the current window.

        Returns:
            Tuple of (previous start, previous end).
        """
        length = (end - start) + timedelta(days=1)
        return start - length, start - timedelta(days=1)

    def get_default_range(self, now: Optional[datetime] = None) -> Tuple[date, date]:
        """
        Returns the month-to-date range of the reference time.

        Args:
            now: Reference time. Defaults to the current time.

        Returns:
            Tuple of (first day of month, reference day).
        """
        if now is None:
            now = datetime.now()
        return date(now.year, now.month, 1), now.date()

    def date_key(self, moment: datetime) -> str:
        """Returns the ISO calendar date (YYYY-MM-DD) of a timestamp."""
        return moment.date().isoformat()
