# dealer_forecasting/utils/date_utils.py
from datetime import date, datetime, timedelta
import calendar

def get_month_start(target_date: date) -> date:
    """Get the first day of the month containing a date.

    Args:
        target_date: Any date

    Returns:
        First day of that month
    """
    return date(target_date.year, target_date.month, 1)

def get_month_end(target_date: date) -> date:
    """Get the last day of the month containing a date.

    Args:
        target_date: Any date

    Returns:
        Last day of that month
    """
    return date(target_date.year, target_date.month, get_days_in_month(target_date.year, target_date.month))

def add_months(start_date: date, months: int) -> date:
    """Add a number of months to a date, clamping the day to the month length.

    Args:
        start_date: Start date
        months: Months to add (may be negative)

    Returns:
        Shifted date
    """
    month_index = start_date.year * 12 + (start_date.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(start_date.day, get_days_in_month(year, month))
    return date(year, month, day)

def months_between(start_date: date, end_date: date) -> int:
    """Count calendar months from start_date's month to end_date's month.

    Args:
        start_date: Start date
        end_date: End date

    Returns:
        Whole months (negative when end_date is earlier)
    """
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)

def period_label(target_date: date) -> str:
    """Short month label, e.g. 'Jan 2027'."""
    return target_date.strftime('%b %Y')

def add_days(start_date: date, days: int) -> date:
    """Add days to a date.

    Args:
        start_date: Start date
        days: Number of days to add

    Returns:
        New date
    """
    return start_date + timedelta(days=days)

def days_between(start_date: date, end_date: date) -> int:
    """Calculate days between two dates.

    Args:
        start_date: Start date
        end_date: End date

    Returns:
        Number of days
    """
    return (end_date - start_date).days

def convert_to_date(date_string: str, format_string: str = "%Y-%m-%d") -> date:
    """Convert string to date.

    Args:
        date_string: Date string
        format_string: Format string

    Returns:
        Date object
    """
    return datetime.strptime(date_string, format_string).date()

def get_days_in_month(year: int, month: int) -> int:
    """Get number of days in a month.

    Args:
        year: Year
        month: Month (1-12)

    Returns:
        Number of days in the month
    """
    return calendar.monthrange(year, month)[1]
