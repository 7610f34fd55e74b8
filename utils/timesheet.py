from datetime import date, datetime, time
from typing import Optional, Tuple

from utils.reporting import month_bounds


def parse_clock(value: str) -> time:
    """'HH:MM' -> time. Raises ValueError on anything else."""
    return datetime.strptime(value, "%H:%M").time()


def compute_total_hours(check_in_time: str, check_out_time: str) -> float:
    """
    Hours between check-in and check-out on the same day, rounded to 2 decimals.
    Raises ValueError unless check-out is strictly after check-in.
    """
    check_in = parse_clock(check_in_time)
    check_out = parse_clock(check_out_time)
    minutes = (check_out.hour * 60 + check_out.minute) - (check_in.hour * 60 + check_in.minute)
    total_hours = round(minutes / 60, 2)
    if total_hours <= 0:
        raise ValueError("Check-out time must be after check-in time")
    return total_hours


def attendance_day(value: date) -> datetime:
    """Attendance is keyed per calendar day; store it as midnight."""
    return datetime.combine(value, time.min)


def period_range(month: Optional[int], year: Optional[int]) -> Optional[Tuple[datetime, datetime]]:
    """A month when both are given, the whole year for a year alone, else no bound."""
    if not year:
        return None
    if month:
        return month_bounds(year, month)
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)
