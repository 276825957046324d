from datetime import date, datetime, timedelta, timezone


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def yesterday_utc() -> date:
    """The most recent day with a final closing price."""
    return today_utc() - timedelta(days=1)


def days_between(start_date: date, end_date: date) -> int:
    """Number of calendar days in the inclusive range (0 if empty)."""
    return max((end_date - start_date).days + 1, 0)
