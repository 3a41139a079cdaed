import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, TypeDecorator, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from perfreview.db.base import Base
from perfreview.models.enums import ReviewRole


class RoleSet(TypeDecorator):
    """
    frozenset[ReviewRole] stored as a JSON list.

    Empty means "every participant sees it". Anything that does not load as a
    list of known role names (legacy rows, hand edits) is read back as empty,
    so a broken filter shows the question to everyone instead of hiding it.
    """

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if not value:
            return None
        return sorted(ReviewRole(v).value for v in value)

    def process_result_value(self, value, dialect):
        if not isinstance(value, list):
            return frozenset()
        try:
            return frozenset(ReviewRole(v) for v in value)
        except (ValueError, TypeError):
            return frozenset()


class ReviewTemplate(Base):
    __tablename__ = "review_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()
    )

    sections = relationship(
        "TemplateSection",
        back_populates="template",
        order_by="TemplateSection.position",
        cascade="all, delete-orphan",
    )

    @property
    def questions(self) -> list["TemplateQuestion"]:
        return [q for s in self.sections for q in s.questions]


class TemplateSection(Base):
    __tablename__ = "template_sections"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("review_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    template = relationship("ReviewTemplate", back_populates="sections")
    questions = relationship(
        "TemplateQuestion",
        back_populates="section",
        order_by="TemplateQuestion.position",
        cascade="all, delete-orphan",
    )


class TemplateQuestion(Base):
    __tablename__ = "template_questions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    section_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    applicable_roles: Mapped[frozenset] = mapped_column(RoleSet, nullable=True, default=frozenset)

    section = relationship("TemplateSection", back_populates="questions")
