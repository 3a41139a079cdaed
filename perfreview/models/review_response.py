import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from perfreview.db.base import Base


class ReviewResponse(Base):
    __tablename__ = "review_responses"
    __table_args__ = (
        UniqueConstraint("review_id", "question_id", name="uq_response_review_question"),
        CheckConstraint("self_rating IS NULL OR (self_rating BETWEEN 1 AND 4)", name="ck_response_self_rating"),
        CheckConstraint("manager_rating IS NULL OR (manager_rating BETWEEN 1 AND 4)", name="ck_response_manager_rating"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("performance_reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_questions.id", ondelete="CASCADE"), nullable=False
    )

    self_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    self_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    manager_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()
    )

    review = relationship("PerformanceReview", back_populates="responses")

    @property
    def effective_rating(self) -> int | None:
        """Manager rating takes precedence over the self rating."""
        if self.manager_rating is not None:
            return self.manager_rating
        return self.self_rating
