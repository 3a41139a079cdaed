"""
Deadline classification and reminder policy.

All distances are whole calendar days between ``now.date()`` and the due
date, so a review due today is never overdue regardless of the hour.
"""
from datetime import date, datetime, timedelta
from enum import Enum

DUE_SOON_DAYS = 3
STALE_AFTER_DAYS = 7
REMIND_EVERY_DAYS = 2
DEFAULT_WINDOW_DAYS = 14


class DeadlineStatus(str, Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    UPCOMING = "upcoming"
    NONE = "none"


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def days_until_due(due_date: date | datetime, now: datetime) -> int:
    """Negative once overdue."""
    return (_as_date(due_date) - now.date()).days


def classify(due_date: date | datetime | None, now: datetime) -> DeadlineStatus:
    if due_date is None:
        return DeadlineStatus.NONE

    days = days_until_due(due_date, now)
    if days < 0:
        return DeadlineStatus.OVERDUE
    if days <= DUE_SOON_DAYS:
        return DeadlineStatus.DUE_SOON
    return DeadlineStatus.UPCOMING


def format_deadline(due_date: date | datetime | None, now: datetime) -> str:
    if due_date is None:
        return "No deadline"

    days = days_until_due(due_date, now)
    if days == 0:
        return "Due today"
    if days < 0:
        overdue = -days
        return "Overdue by 1 day" if overdue == 1 else f"Overdue by {overdue} days"
    if days == 1:
        return "Due tomorrow"
    return f"Due in {days} days"


def should_remind(
    due_date: date | datetime | None,
    last_reminder_sent: datetime | None,
    now: datetime,
) -> bool:
    if due_date is None:
        return False

    days = days_until_due(due_date, now)

    # stale: stop nagging
    if days < -STALE_AFTER_DAYS:
        return False

    if last_reminder_sent is not None:
        days_since_last = (now - last_reminder_sent).days
        if days_since_last < REMIND_EVERY_DAYS:
            return False

    return days <= DUE_SOON_DAYS


def default_due_date(now: datetime, days: int = DEFAULT_WINDOW_DAYS) -> date:
    return (now + timedelta(days=days)).date()
