from datetime import datetime
from pydantic import BaseModel

from perfreview.schemas.review_cycle import CycleRunOut


class SchedulerSummaryOut(BaseModel):
    success: bool = True
    message: str
    processed_at: datetime
    cycles_processed: int
    results: list[CycleRunOut]


class DeadlineSweepOut(BaseModel):
    success: bool = True
    message: str
    reviews_checked: int
    three_day_reminders: int
    one_day_reminders: int
    overdue_reminders: int
    errors: int


class ReminderRunOut(BaseModel):
    success: bool = True
    message: str
    reviews_checked: int
    reminders_sent: int
    failures: int


class CleanupOut(BaseModel):
    success: bool = True
    deleted_count: int
