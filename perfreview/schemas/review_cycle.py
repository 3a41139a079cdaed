import uuid
from datetime import date, datetime
from pydantic import BaseModel, Field

from perfreview.models.enums import Frequency


class ReviewCycleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    frequency: Frequency = Frequency.ANNUAL
    start_date: date
    due_date: date | None = None
    template_id: uuid.UUID
    include_all_users: bool = False
    departments: list[str] = Field(default_factory=list)


class ReviewCycleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    is_active: bool | None = None


class CycleProgressOut(BaseModel):
    total: int
    pending_employee: int
    pending_manager: int
    completed: int
    completion_rate: int


class ReviewCycleOut(BaseModel):
    id: str
    name: str
    description: str | None
    frequency: str
    start_date: date
    due_date: date | None
    last_run_date: datetime | None
    next_run_date: date | None
    is_active: bool
    include_all_users: bool
    departments: list[str] | None
    template_id: str
    created_by_id: str | None
    created_at: datetime
    updated_at: datetime


class ReviewCycleDetailOut(ReviewCycleOut):
    progress: CycleProgressOut


class CycleRunOut(BaseModel):
    cycle_id: str
    cycle_name: str
    success: bool
    reviews_requested: int = 0
    reviews_created: int = 0
    next_run_date: date | None = None
    error: str | None = None


class CycleReminderOut(BaseModel):
    cycle_id: str
    employee_recipients: int
    manager_recipients: int
    emails_queued: int
    message: str
