from datetime import datetime, timezone


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative(timestamp: datetime | None, now: datetime | None = None) -> str:
    """Render a past instant the way the chat list shows it.

    "Just now" under a minute, then minutes, hours and days up to a week,
    after which the calendar date is shown.
    """
    if timestamp is None:
        return ""
    timestamp = _as_utc(timestamp)
    now = _as_utc(now) if now else datetime.now(timezone.utc)

    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if minutes < 60 * 24:
        return _plural(minutes // 60, "hour")
    if minutes < 60 * 24 * 7:
        return _plural(minutes // (60 * 24), "day")
    return timestamp.strftime("%m/%d/%Y")
