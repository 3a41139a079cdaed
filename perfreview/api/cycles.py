import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from perfreview.api.reviews import review_to_out
from perfreview.core.rbac import require_roles
from perfreview.core.security import get_current_user
from perfreview.db.session import get_db
from perfreview.models.enums import UserRole
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.user import User
from perfreview.schemas.review import ReviewOut
from perfreview.schemas.review_cycle import (
    CycleProgressOut,
    CycleReminderOut,
    CycleRunOut,
    ReviewCycleCreate,
    ReviewCycleDetailOut,
    ReviewCycleOut,
    ReviewCycleUpdate,
)
from perfreview.services import cycles as cycle_service
from perfreview.services.container import Services, get_services

router = APIRouter(prefix="/cycles", tags=["review-cycles"])


def to_out(c: ReviewCycle) -> ReviewCycleOut:
    return ReviewCycleOut(
        id=str(c.id),
        name=c.name,
        description=c.description,
        frequency=c.frequency,
        start_date=c.start_date,
        due_date=c.due_date,
        last_run_date=c.last_run_date,
        next_run_date=c.next_run_date,
        is_active=c.is_active,
        include_all_users=c.include_all_users,
        departments=c.departments,
        template_id=str(c.template_id),
        created_by_id=str(c.created_by_id) if c.created_by_id else None,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def progress_out(p: cycle_service.CycleProgress) -> CycleProgressOut:
    return CycleProgressOut(
        total=p.total,
        pending_employee=p.pending_employee,
        pending_manager=p.pending_manager,
        completed=p.completed,
        completion_rate=p.completion_rate,
    )


@router.get("", response_model=list[ReviewCycleOut])
def list_cycles(
    active: bool | None = Query(default=None, description="Filter on is_active"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    query = db.query(ReviewCycle)
    if active is not None:
        query = query.filter(ReviewCycle.is_active.is_(active))
    return [to_out(c) for c in query.order_by(ReviewCycle.created_at.desc()).all()]


@router.post("", response_model=ReviewCycleOut, status_code=status.HTTP_201_CREATED)
def create_cycle(
    payload: ReviewCycleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    c = cycle_service.create_cycle(
        db,
        name=payload.name,
        description=payload.description,
        frequency=payload.frequency,
        start_date=payload.start_date,
        due_date=payload.due_date,
        template_id=payload.template_id,
        include_all_users=payload.include_all_users,
        departments=payload.departments,
        actor_id=current_user.id,
    )
    return to_out(c)


@router.get("/upcoming", response_model=list[ReviewCycleOut])
def upcoming(
    days: int = Query(default=30, ge=1, le=366),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    _: User = Depends(get_current_user),
):
    """Active cycles whose next run falls within the coming ``days``."""
    return [to_out(c) for c in cycle_service.upcoming_cycles(db, services.now(), days=days)]


@router.get("/{cycle_id}", response_model=ReviewCycleDetailOut)
def get_cycle(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    c = cycle_service.get_cycle_or_404(db, cycle_id)
    progress = cycle_service.cycle_progress(db, c.id)
    return ReviewCycleDetailOut(**to_out(c).model_dump(), progress=progress_out(progress))


@router.patch("/{cycle_id}", response_model=ReviewCycleOut)
def update_cycle(
    cycle_id: uuid.UUID,
    payload: ReviewCycleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    c = cycle_service.update_cycle(
        db,
        cycle_id,
        actor_id=current_user.id,
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
    )
    return to_out(c)


@router.delete("/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cycle(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    cycle_service.delete_cycle(db, cycle_id, actor_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{cycle_id}/launch", response_model=CycleRunOut)
def launch_cycle(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    """Run the cycle now instead of waiting for the scheduler."""
    result = services.scheduler(db).launch_cycle(cycle_id, services.now(), actor_id=current_user.id)
    return CycleRunOut(
        cycle_id=str(result.cycle_id),
        cycle_name=result.cycle_name,
        success=result.success,
        reviews_requested=result.reviews_requested,
        reviews_created=result.reviews_created,
        next_run_date=result.next_run_date,
        error=result.error,
    )


@router.post("/{cycle_id}/reminders", response_model=CycleReminderOut)
def send_cycle_reminders(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    _: User = Depends(require_roles(UserRole.HR)),
):
    result = services.dispatcher(db).broadcast_cycle_reminders(cycle_id, services.now())
    return CycleReminderOut(
        cycle_id=str(result.cycle_id),
        employee_recipients=result.employee_recipients,
        manager_recipients=result.manager_recipients,
        emails_queued=result.emails_queued,
        message=f"Queued {result.emails_queued} reminder email(s)",
    )


@router.get("/{cycle_id}/progress", response_model=CycleProgressOut)
def get_progress(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return progress_out(cycle_service.cycle_progress(db, cycle_id))


@router.get("/{cycle_id}/reviews", response_model=list[ReviewOut])
def list_cycle_reviews(
    cycle_id: uuid.UUID,
    review_status: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    _: User = Depends(require_roles(UserRole.HR)),
):
    cycle_service.get_cycle_or_404(db, cycle_id)
    query = db.query(PerformanceReview).filter(PerformanceReview.cycle_id == cycle_id)
    if review_status:
        query = query.filter(PerformanceReview.status == review_status)
    now = services.now()
    return [review_to_out(r, now) for r in query.order_by(PerformanceReview.created_at.asc()).all()]
