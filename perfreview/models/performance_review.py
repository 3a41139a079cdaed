import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Float, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from perfreview.db.base import Base
from perfreview.models.enums import ReviewStatus, sql_in


class PerformanceReview(Base):
    __tablename__ = "performance_reviews"
    __table_args__ = (
        # Ad-hoc reviews have no cycle; NULLs never collide
        UniqueConstraint("employee_id", "cycle_id", name="uq_review_employee_cycle"),
        CheckConstraint(
            f"status IN ({sql_in(ReviewStatus)})",
            name="ck_performance_reviews_status",
        ),
        CheckConstraint(
            "overall_score IS NULL OR (overall_score >= 0 AND overall_score <= 4)",
            name="ck_performance_reviews_score",
        ),
        # COMPLETED => completed_at set
        CheckConstraint(
            "(status <> 'COMPLETED') OR (completed_at IS NOT NULL)",
            name="ck_review_ts_completed",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    manager_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("review_templates.id", ondelete="RESTRICT"), nullable=False
    )
    cycle_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("review_cycles.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReviewStatus.PENDING_EMPLOYEE.value)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    overall_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_reminder_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=sa.func.now()
    )
    # Still bumped on completion: existing reports read it as the completion time
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    employee = relationship("User", foreign_keys=[employee_id])
    manager = relationship("User", foreign_keys=[manager_id])
    template = relationship("ReviewTemplate")
    cycle = relationship("ReviewCycle")
    responses = relationship(
        "ReviewResponse",
        back_populates="review",
        cascade="all, delete-orphan",
    )
