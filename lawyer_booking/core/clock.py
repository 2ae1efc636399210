from datetime import date, datetime, time


def weekday_index(day: date) -> int:
    """Weekday counted from Sunday (0) to Saturday (6)."""
    return (day.weekday() + 1) % 7


def to_wall_clock(value: time) -> time:
    """Naive local time of day, trimmed to the minute.

    A time carrying a UTC offset is first converted to server local time,
    the same way ``to_local_naive`` treats timestamps.
    """
    if value.tzinfo is not None:
        value = datetime.combine(date.today(), value).astimezone().time()
    return value.replace(second=0, microsecond=0, tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    """Drop the timezone (converting to server local time first) and trim to the minute."""
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)
