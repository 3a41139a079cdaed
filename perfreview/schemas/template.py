from datetime import datetime
from pydantic import BaseModel, Field

from perfreview.models.enums import ReviewRole


class QuestionIn(BaseModel):
    text: str = Field(min_length=1)
    # empty: every participant answers it
    applicable_roles: list[ReviewRole] = Field(default_factory=list)


class SectionIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    questions: list[QuestionIn] = Field(default_factory=list)


class TemplateCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    sections: list[SectionIn] = Field(min_length=1)


class TemplateQuestionOut(BaseModel):
    id: str
    text: str
    position: int
    applicable_roles: list[str]


class TemplateSectionOut(BaseModel):
    id: str
    title: str
    position: int
    questions: list[TemplateQuestionOut]


class TemplateOut(BaseModel):
    id: str
    title: str
    description: str | None
    created_by_id: str | None
    created_at: datetime
    sections: list[TemplateSectionOut]
