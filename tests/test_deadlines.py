from datetime import date, datetime, timedelta

from perfreview.services.deadlines import (
    DeadlineStatus,
    classify,
    days_until_due,
    format_deadline,
    should_remind,
)

NOW = datetime(2025, 3, 10, 18, 30)
TODAY = NOW.date()


def _in(days: int) -> date:
    return TODAY + timedelta(days=days)


def test_classify():
    assert classify(None, NOW) == DeadlineStatus.NONE
    assert classify(_in(-1), NOW) == DeadlineStatus.OVERDUE
    assert classify(_in(3), NOW) == DeadlineStatus.DUE_SOON
    assert classify(_in(4), NOW) == DeadlineStatus.UPCOMING


def test_due_today_is_not_overdue_late_in_the_day():
    assert classify(TODAY, NOW) == DeadlineStatus.DUE_SOON
    assert days_until_due(datetime(2025, 3, 10, 0, 0), NOW) == 0


def test_format_deadline():
    assert format_deadline(None, NOW) == "No deadline"
    assert format_deadline(TODAY, NOW) == "Due today"
    assert format_deadline(_in(-1), NOW) == "Overdue by 1 day"
    assert format_deadline(_in(-5), NOW) == "Overdue by 5 days"
    assert format_deadline(_in(1), NOW) == "Due tomorrow"
    assert format_deadline(_in(6), NOW) == "Due in 6 days"


def test_should_remind_window():
    assert should_remind(None, None, NOW) is False
    assert should_remind(_in(5), None, NOW) is False
    assert should_remind(_in(3), None, NOW) is True
    assert should_remind(_in(-7), None, NOW) is True
    # more than a week overdue: stop reminding
    assert should_remind(_in(-8), None, NOW) is False


def test_should_remind_respects_spacing():
    assert should_remind(_in(1), NOW - timedelta(days=1), NOW) is False
    assert should_remind(_in(1), NOW - timedelta(hours=47), NOW) is False
    assert should_remind(_in(1), NOW - timedelta(days=2), NOW) is True
