"""UTC-everywhere time handling and day-granularity date math."""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """
    Current calendar date in UTC.

    Due dates, payment dates and reminder dates are all day-granular, so this
    is the "today" every derivation defaults to.
    """
    return now_utc().date()


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def days_between(start: date, end: date) -> int:
    """
    Whole days from start to end.

    Negative when end lies before start. Datetimes are reduced to their date.
    """
    if isinstance(start, datetime):
        start = to_utc(start).date()
    if isinstance(end, datetime):
        end = to_utc(end).date()
    return (end - start).days


def parse_date(value: str) -> date:
    """
    Parse an ISO 8601 calendar date ("2024-03-31").

    Full timestamps are accepted as long as they carry a timezone; they are
    converted to UTC before the date is taken.
    """
    if "T" in value:
        dt = datetime.fromisoformat(value)
        if dt.tzinfo is None:
            raise ValueError(
                "Cannot parse naive datetime string. "
                "Include timezone offset (e.g., 'Z' or '+00:00')."
            )
        return to_utc(dt).date()
    return date.fromisoformat(value)
