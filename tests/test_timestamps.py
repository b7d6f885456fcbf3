from datetime import datetime, timedelta, timezone

from app.services.timestamps import format_relative

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def test_recent_is_just_now():
    assert format_relative(NOW - timedelta(seconds=30), NOW) == "Just now"


def test_minutes_and_hours_pluralize():
    assert format_relative(NOW - timedelta(minutes=1), NOW) == "1 minute ago"
    assert format_relative(NOW - timedelta(minutes=5), NOW) == "5 minutes ago"
    assert format_relative(NOW - timedelta(hours=1), NOW) == "1 hour ago"
    assert format_relative(NOW - timedelta(hours=3, minutes=59), NOW) == "3 hours ago"


def test_days_then_calendar_date():
    assert format_relative(NOW - timedelta(days=1), NOW) == "1 day ago"
    assert format_relative(NOW - timedelta(days=6), NOW) == "6 days ago"
    assert format_relative(NOW - timedelta(days=7), NOW) == "03/03/2026"


def test_naive_timestamps_are_utc():
    naive = (NOW - timedelta(minutes=2)).replace(tzinfo=None)
    assert format_relative(naive, NOW) == "2 minutes ago"


def test_missing_timestamp():
    assert format_relative(None, NOW) == ""
