from datetime import date

from perfreview.models.enums import Frequency
from perfreview.services.recurrence import add_months, next_run


def test_quarterly_keeps_day_of_month():
    assert next_run(date(2025, 1, 10), Frequency.QUARTERLY) == date(2025, 4, 10)


def test_each_frequency_step():
    anchor = date(2025, 3, 15)
    assert next_run(anchor, "MONTHLY") == date(2025, 4, 15)
    assert next_run(anchor, "QUARTERLY") == date(2025, 6, 15)
    assert next_run(anchor, "SEMI_ANNUAL") == date(2025, 9, 15)
    assert next_run(anchor, "ANNUAL") == date(2026, 3, 15)


def test_month_end_is_clamped():
    assert next_run(date(2025, 1, 31), Frequency.MONTHLY) == date(2025, 2, 28)
    assert next_run(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)
    assert next_run(date(2025, 8, 31), Frequency.SEMI_ANNUAL) == date(2026, 2, 28)


def test_leap_day_annual_rolls_to_feb_28():
    assert next_run(date(2024, 2, 29), Frequency.ANNUAL) == date(2025, 2, 28)


def test_year_boundary():
    assert next_run(date(2025, 11, 15), Frequency.QUARTERLY) == date(2026, 2, 15)
    assert add_months(date(2025, 12, 31), 2) == date(2026, 2, 28)


def test_unknown_frequency_falls_back_to_annual():
    assert next_run(date(2025, 5, 1), "WEEKLY") == date(2026, 5, 1)
