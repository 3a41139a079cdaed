from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from perfreview.api.reviews import review_to_out
from perfreview.core.security import get_current_user
from perfreview.db.session import get_db
from perfreview.models.enums import PENDING_STATUSES, ReviewStatus
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.user import User
from perfreview.schemas.review import ReviewOut
from perfreview.services.container import Services, get_services

router = APIRouter(tags=["auth"])


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    """Current user as resolved from the X-User-Email header"""
    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
        "department": current_user.department,
        "manager_id": str(current_user.manager_id) if current_user.manager_id else None,
        "is_active": current_user.is_active,
    }


@router.get("/me/reviews", response_model=list[ReviewOut])
def my_reviews(
    role: str | None = Query(default=None, description="Filter by role: employee or manager"),
    status: str | None = Query(default=None, description="Filter by review status"),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    """
    Reviews where the current user is the reviewed employee or the reviewing manager.
    """
    query = db.query(PerformanceReview)

    if role == "employee":
        query = query.filter(PerformanceReview.employee_id == current_user.id)
    elif role == "manager":
        query = query.filter(PerformanceReview.manager_id == current_user.id)
    else:
        query = query.filter(
            (PerformanceReview.employee_id == current_user.id)
            | (PerformanceReview.manager_id == current_user.id)
        )

    if status:
        query = query.filter(PerformanceReview.status == status)

    now = services.now()
    reviews = query.order_by(PerformanceReview.created_at.desc()).all()
    return [review_to_out(r, now) for r in reviews]


@router.get("/me/deadlines", response_model=list[ReviewOut])
def my_deadlines(
    days: int = Query(default=7, ge=1, le=90, description="Look-ahead window in days"),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    """
    Reviews waiting on the current user that are overdue or due within ``days``.
    """
    now = services.now()
    horizon = now.date() + timedelta(days=days)

    waiting_on_me = (
        (
            (PerformanceReview.status == ReviewStatus.PENDING_EMPLOYEE.value)
            & (PerformanceReview.employee_id == current_user.id)
        )
        | (
            (PerformanceReview.status == ReviewStatus.PENDING_MANAGER.value)
            & (PerformanceReview.manager_id == current_user.id)
        )
    )
    reviews = (
        db.query(PerformanceReview)
        .filter(
            PerformanceReview.status.in_(PENDING_STATUSES),
            waiting_on_me,
            PerformanceReview.due_date.is_not(None),
            PerformanceReview.due_date <= horizon,
        )
        .order_by(PerformanceReview.due_date.asc())
        .all()
    )
    return [review_to_out(r, now) for r in reviews]
