"""
Persistence operations used by the review lifecycle components.

``ReviewStore`` is the seam; ``SqlAlchemyReviewStore`` is the only
implementation and works on the caller's session. Nothing here commits
implicitly: the component driving an operation decides where the commit
point is.
"""
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Iterable

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, selectinload

from perfreview.core.audit import log_event
from perfreview.models.enums import PENDING_STATUSES, UserRole
from perfreview.models.notification import Notification
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.review_response import ReviewResponse
from perfreview.models.user import User

REVIEWABLE_ROLES = (UserRole.EMPLOYEE.value, UserRole.MANAGER.value)


class ReviewStore(ABC):
    @abstractmethod
    def find_due_cycles(self, now: datetime) -> list[ReviewCycle]: ...

    @abstractmethod
    def get_cycle(self, cycle_id: uuid.UUID) -> ReviewCycle | None: ...

    @abstractmethod
    def resolve_population(self, cycle: ReviewCycle) -> list[User]: ...

    @abstractmethod
    def create_reviews_bulk(self, rows: list[dict[str, Any]], skip_duplicates: bool = True) -> list[uuid.UUID]:
        """Insert review rows; returns the ids actually inserted."""

    @abstractmethod
    def update_cycle_run_dates(self, cycle_id: uuid.UUID, last_run: datetime, next_run: date) -> None: ...

    @abstractmethod
    def create_review(self, **fields: Any) -> PerformanceReview: ...

    @abstractmethod
    def find_review(self, review_id: uuid.UUID, for_update: bool = False) -> PerformanceReview | None: ...

    @abstractmethod
    def update_review_status(self, review_id: uuid.UUID, status: str, **fields: Any) -> PerformanceReview: ...

    @abstractmethod
    def upsert_response(self, review_id: uuid.UUID, question_id: uuid.UUID, **fields: Any) -> ReviewResponse: ...

    @abstractmethod
    def list_responses(self, review_id: uuid.UUID) -> list[ReviewResponse]: ...

    @abstractmethod
    def list_pending_reviews(
        self,
        statuses: Iterable[str] = PENDING_STATUSES,
        cycle_id: uuid.UUID | None = None,
        with_due_date: bool = False,
    ) -> list[PerformanceReview]: ...

    @abstractmethod
    def find_recent_notification(
        self, user_id: uuid.UUID, type: str, link: str | None, since: datetime
    ) -> Notification | None: ...

    @abstractmethod
    def create_notification(self, **fields: Any) -> Notification: ...

    @abstractmethod
    def delete_notifications_before(self, cutoff: datetime) -> int: ...

    @abstractmethod
    def record_event(
        self,
        actor_id: uuid.UUID | None,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...


class SqlAlchemyReviewStore(ReviewStore):
    def __init__(self, session: Session):
        self.session = session

    # cycles

    def find_due_cycles(self, now: datetime) -> list[ReviewCycle]:
        return (
            self.session.query(ReviewCycle)
            .options(selectinload(ReviewCycle.template))
            .filter(
                ReviewCycle.is_active.is_(True),
                ReviewCycle.next_run_date.is_not(None),
                ReviewCycle.next_run_date <= now.date(),
            )
            .order_by(ReviewCycle.next_run_date.asc(), ReviewCycle.created_at.asc())
            .all()
        )

    def get_cycle(self, cycle_id: uuid.UUID) -> ReviewCycle | None:
        return self.session.get(ReviewCycle, cycle_id)

    def resolve_population(self, cycle: ReviewCycle) -> list[User]:
        # Manager assignment is deliberately not filtered: the instantiator rejects
        # populations with unmanaged employees instead of silently skipping them.
        query = self.session.query(User).filter(
            User.is_active.is_(True),
            User.review_eligible.is_(True),
            User.role.in_(REVIEWABLE_ROLES),
        )
        if not cycle.include_all_users:
            departments = cycle.departments if isinstance(cycle.departments, list) else []
            if not departments:
                return []
            query = query.filter(User.department.in_(departments))

        return query.order_by(User.name.asc(), User.email.asc()).all()

    def update_cycle_run_dates(self, cycle_id: uuid.UUID, last_run: datetime, next_run: date) -> None:
        cycle = self.session.get(ReviewCycle, cycle_id)
        cycle.last_run_date = last_run
        cycle.next_run_date = next_run
        self.session.flush()

    # reviews

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(PerformanceReview.__table__)
        if dialect == "sqlite":
            return sqlite.insert(PerformanceReview.__table__)
        raise NotImplementedError(f"No conflict-ignoring insert for dialect {dialect!r}")

    def create_reviews_bulk(self, rows: list[dict[str, Any]], skip_duplicates: bool = True) -> list[uuid.UUID]:
        if not rows:
            return []

        rows = [{**row, "id": row.get("id") or uuid.uuid4()} for row in rows]
        candidate_ids = [row["id"] for row in rows]

        stmt = self._insert()
        if skip_duplicates:
            stmt = stmt.on_conflict_do_nothing(index_elements=["employee_id", "cycle_id"])
        self.session.execute(stmt, rows)

        # Rows skipped by ON CONFLICT never got their pre-generated id
        inserted = set(
            self.session.execute(
                select(PerformanceReview.id).where(PerformanceReview.id.in_(candidate_ids))
            ).scalars()
        )
        return [rid for rid in candidate_ids if rid in inserted]

    def create_review(self, **fields: Any) -> PerformanceReview:
        review = PerformanceReview(**fields)
        self.session.add(review)
        self.session.flush()
        return review

    def find_review(self, review_id: uuid.UUID, for_update: bool = False) -> PerformanceReview | None:
        query = self.session.query(PerformanceReview).filter(PerformanceReview.id == review_id)
        if for_update:
            query = query.with_for_update()
        return query.one_or_none()

    def update_review_status(self, review_id: uuid.UUID, status: str, **fields: Any) -> PerformanceReview:
        review = self.session.get(PerformanceReview, review_id)
        review.status = status
        for key, value in fields.items():
            setattr(review, key, value)
        self.session.flush()
        return review

    def upsert_response(self, review_id: uuid.UUID, question_id: uuid.UUID, **fields: Any) -> ReviewResponse:
        # Callers hold the review row lock, so find-then-write cannot race here
        response = (
            self.session.query(ReviewResponse)
            .filter(ReviewResponse.review_id == review_id, ReviewResponse.question_id == question_id)
            .one_or_none()
        )
        if response is None:
            response = ReviewResponse(review_id=review_id, question_id=question_id)
            self.session.add(response)
        for key, value in fields.items():
            setattr(response, key, value)
        self.session.flush()
        return response

    def list_responses(self, review_id: uuid.UUID) -> list[ReviewResponse]:
        return (
            self.session.query(ReviewResponse)
            .filter(ReviewResponse.review_id == review_id)
            .all()
        )

    def list_pending_reviews(
        self,
        statuses: Iterable[str] = PENDING_STATUSES,
        cycle_id: uuid.UUID | None = None,
        with_due_date: bool = False,
    ) -> list[PerformanceReview]:
        query = (
            self.session.query(PerformanceReview)
            .options(
                selectinload(PerformanceReview.employee),
                selectinload(PerformanceReview.manager),
                selectinload(PerformanceReview.template),
            )
            .filter(PerformanceReview.status.in_(list(statuses)))
        )
        if cycle_id is not None:
            query = query.filter(PerformanceReview.cycle_id == cycle_id)
        if with_due_date:
            query = query.filter(PerformanceReview.due_date.is_not(None))
        return query.order_by(PerformanceReview.due_date.asc(), PerformanceReview.created_at.asc()).all()

    # notifications

    def find_recent_notification(
        self, user_id: uuid.UUID, type: str, link: str | None, since: datetime
    ) -> Notification | None:
        query = self.session.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.type == type,
            Notification.created_at >= since,
        )
        if link is None:
            query = query.filter(Notification.link.is_(None))
        else:
            query = query.filter(Notification.link == link)
        return query.order_by(Notification.created_at.desc()).first()

    def create_notification(self, **fields: Any) -> Notification:
        notification = Notification(**fields)
        self.session.add(notification)
        self.session.flush()
        return notification

    def delete_notifications_before(self, cutoff: datetime) -> int:
        result = self.session.execute(delete(Notification).where(Notification.created_at < cutoff))
        return result.rowcount or 0

    # transaction

    def record_event(self, actor_id, action, entity_type, entity_id, metadata=None) -> None:
        log_event(
            db=self.session,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata,
        )

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
