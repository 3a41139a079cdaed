from fastapi import HTTPException

from perfreview.models.enums import ReviewRole, UserRole
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.user import User


def participant_role(user: User, review: PerformanceReview) -> ReviewRole | None:
    """The part the user plays on this review, matched by id."""
    if user.id == review.employee_id:
        return ReviewRole.EMPLOYEE
    if user.id == review.manager_id:
        return ReviewRole.MANAGER
    return None


def assert_can_view_review(user: User, review: PerformanceReview) -> ReviewRole | None:
    role = participant_role(user, review)
    if role is None and user.role != UserRole.HR.value:
        raise HTTPException(status_code=403, detail="Only the review's participants or HR can view it")
    return role
