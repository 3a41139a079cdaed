import uuid
from datetime import date, datetime
from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    employee_id: uuid.UUID
    template_id: uuid.UUID
    manager_id: uuid.UUID | None = None
    due_date: date | None = None


class AnswerIn(BaseModel):
    question_id: uuid.UUID
    # range is checked by the workflow so it reports every offending question
    rating: int | None = None
    comment: str | None = Field(default=None, max_length=5000)


class ResponsesPayload(BaseModel):
    responses: list[AnswerIn] = Field(default_factory=list)


class ReviewOut(BaseModel):
    id: str
    employee_id: str
    manager_id: str
    template_id: str
    cycle_id: str | None
    status: str
    due_date: date | None
    deadline_status: str
    deadline_text: str
    overall_score: float | None
    is_draft: bool
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class QuestionOut(BaseModel):
    id: str
    section_id: str
    section_title: str
    text: str
    position: int
    applicable_roles: list[str]


class ResponseOut(BaseModel):
    question_id: str
    self_rating: int | None
    self_comment: str | None
    manager_rating: int | None
    manager_comment: str | None


class ReviewDetailOut(ReviewOut):
    viewer_role: str | None
    questions: list[QuestionOut]
    responses: list[ResponseOut]
