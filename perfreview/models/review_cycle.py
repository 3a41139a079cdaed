import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from perfreview.db.base import Base
from perfreview.models.enums import Frequency, sql_in


class ReviewCycle(Base):
    __tablename__ = "review_cycles"
    __table_args__ = (
        CheckConstraint(
            f"frequency IN ({sql_in(Frequency)})",
            name="ck_review_cycles_frequency",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default=Frequency.ANNUAL.value)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_run_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_run_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    include_all_users: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    departments: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("review_templates.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    template = relationship("ReviewTemplate")

    def review_window(self, default_days: int) -> timedelta:
        if self.due_date is not None and self.due_date >= self.start_date:
            return self.due_date - self.start_date
        return timedelta(days=default_days)

    def due_date_for(self, run_date: date, default_days: int = 14) -> date:
        """
        Due date for reviews created by a run on run_date.

        The first run keeps the due date HR entered; later recurrences get the
        same window counted from their own run date.
        """
        if self.last_run_date is None and self.due_date is not None:
            return self.due_date
        return run_date + self.review_window(default_days)
