import calendar
from datetime import date

from perfreview.models.enums import Frequency

MONTHS_PER_RUN = {
    Frequency.MONTHLY.value: 1,
    Frequency.QUARTERLY.value: 3,
    Frequency.SEMI_ANNUAL.value: 6,
    Frequency.ANNUAL.value: 12,
}


def add_months(anchor: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_run(anchor: date, frequency: str | Frequency) -> date:
    """
    Next anchor date for a recurring cycle.

    Jan 31 + 1 month is the last day of February, Feb 29 + 1 year is Feb 28.
    Unknown frequencies are treated as ANNUAL.
    """
    key = frequency.value if isinstance(frequency, Frequency) else frequency
    return add_months(anchor, MONTHS_PER_RUN.get(key, 12))
