"""HR-side cycle management: create, edit, delete, progress, upcoming runs."""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from perfreview.core.audit import log_event
from perfreview.core.errors import InvalidState, NotFound, ValidationFailed
from perfreview.models.enums import Frequency, ReviewStatus
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.review_template import ReviewTemplate
from perfreview.services.recurrence import next_run


@dataclass
class CycleProgress:
    total: int
    pending_employee: int
    pending_manager: int
    completed: int

    @property
    def completion_rate(self) -> int:
        """Whole percent of completed reviews."""
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)


def get_cycle_or_404(db: Session, cycle_id: uuid.UUID) -> ReviewCycle:
    cycle = db.get(ReviewCycle, cycle_id)
    if not cycle:
        raise NotFound("Review cycle not found")
    return cycle


def _snapshot(c: ReviewCycle) -> dict:
    return {
        "name": c.name,
        "description": c.description,
        "is_active": c.is_active,
        "next_run_date": c.next_run_date.isoformat() if c.next_run_date else None,
    }


def create_cycle(
    db: Session,
    *,
    name: str,
    frequency: Frequency | str,
    start_date: date,
    template_id: uuid.UUID,
    actor_id: uuid.UUID | None,
    description: str | None = None,
    due_date: date | None = None,
    include_all_users: bool = False,
    departments: list[str] | None = None,
) -> ReviewCycle:
    if db.get(ReviewTemplate, template_id) is None:
        raise NotFound("Template not found")

    departments = sorted({d.strip() for d in departments or [] if d and d.strip()})
    if not include_all_users and not departments:
        raise ValidationFailed("Choose at least one department or include all users")
    if due_date is not None and due_date < start_date:
        raise ValidationFailed("Due date cannot be before the start date")

    frequency_value = Frequency(frequency).value
    c = ReviewCycle(
        name=name,
        description=description,
        frequency=frequency_value,
        start_date=start_date,
        due_date=due_date,
        next_run_date=next_run(start_date, frequency_value),
        is_active=True,
        include_all_users=include_all_users,
        departments=None if include_all_users else departments,
        template_id=template_id,
        created_by_id=actor_id,
    )
    db.add(c)
    db.flush()  # ensures c.id exists for audit

    log_event(
        db=db,
        actor_id=actor_id,
        action="CYCLE_CREATED",
        entity_type="review_cycle",
        entity_id=c.id,
        metadata={
            "name": name,
            "frequency": frequency_value,
            "start_date": start_date.isoformat(),
            "next_run_date": c.next_run_date.isoformat(),
        },
    )

    db.commit()
    db.refresh(c)
    return c


def update_cycle(
    db: Session,
    cycle_id: uuid.UUID,
    *,
    actor_id: uuid.UUID | None,
    name: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
) -> ReviewCycle:
    c = get_cycle_or_404(db, cycle_id)
    before = _snapshot(c)

    if name is not None:
        c.name = name
    if description is not None:
        c.description = description
    if is_active is not None:
        c.is_active = is_active

    log_event(
        db=db,
        actor_id=actor_id,
        action="CYCLE_UPDATED",
        entity_type="review_cycle",
        entity_id=c.id,
        metadata={"before": before, "after": _snapshot(c)},
    )

    db.commit()
    db.refresh(c)
    return c


def delete_cycle(db: Session, cycle_id: uuid.UUID, *, actor_id: uuid.UUID | None) -> None:
    c = get_cycle_or_404(db, cycle_id)

    review_count = (
        db.query(func.count(PerformanceReview.id))
        .filter(PerformanceReview.cycle_id == c.id)
        .scalar()
    )
    if review_count:
        raise InvalidState(
            "Cannot delete a cycle that already has reviews; deactivate it instead",
            {"review_count": review_count},
        )

    log_event(
        db=db,
        actor_id=actor_id,
        action="CYCLE_DELETED",
        entity_type="review_cycle",
        entity_id=c.id,
        metadata=_snapshot(c),
    )
    db.delete(c)
    db.commit()


def cycle_progress(db: Session, cycle_id: uuid.UUID) -> CycleProgress:
    get_cycle_or_404(db, cycle_id)

    rows = (
        db.query(PerformanceReview.status, func.count(PerformanceReview.id))
        .filter(PerformanceReview.cycle_id == cycle_id)
        .group_by(PerformanceReview.status)
        .all()
    )
    counts = {status: n for status, n in rows}
    return CycleProgress(
        total=sum(counts.values()),
        pending_employee=counts.get(ReviewStatus.PENDING_EMPLOYEE.value, 0),
        pending_manager=counts.get(ReviewStatus.PENDING_MANAGER.value, 0),
        completed=counts.get(ReviewStatus.COMPLETED.value, 0),
    )


def upcoming_cycles(db: Session, now: datetime, days: int = 30) -> list[ReviewCycle]:
    today = now.date()
    return (
        db.query(ReviewCycle)
        .filter(
            ReviewCycle.is_active.is_(True),
            ReviewCycle.next_run_date >= today,
            ReviewCycle.next_run_date <= today + timedelta(days=days),
        )
        .order_by(ReviewCycle.next_run_date.asc())
        .all()
    )
