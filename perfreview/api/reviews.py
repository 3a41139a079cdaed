import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from perfreview.core.access import assert_can_view_review
from perfreview.core.errors import NotFound
from perfreview.core.rbac import require_roles
from perfreview.core.security import get_current_user
from perfreview.db.session import get_db
from perfreview.models.enums import ReviewRole, ReviewStatus, UserRole
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_template import ReviewTemplate
from perfreview.models.user import User
from perfreview.schemas.review import (
    QuestionOut,
    ResponseOut,
    ResponsesPayload,
    ReviewCreate,
    ReviewDetailOut,
    ReviewOut,
)
from perfreview.services.container import Services, get_services
from perfreview.services.deadlines import classify, format_deadline
from perfreview.services.questions import visible_questions
from perfreview.services.workflow import Answer

router = APIRouter(prefix="/reviews", tags=["reviews"])


def review_to_out(r: PerformanceReview, now: datetime) -> ReviewOut:
    return ReviewOut(
        id=str(r.id),
        employee_id=str(r.employee_id),
        manager_id=str(r.manager_id),
        template_id=str(r.template_id),
        cycle_id=str(r.cycle_id) if r.cycle_id else None,
        status=r.status,
        due_date=r.due_date,
        deadline_status=classify(r.due_date, now).value,
        deadline_text=format_deadline(r.due_date, now),
        overall_score=float(r.overall_score) if r.overall_score is not None else None,
        is_draft=r.is_draft,
        completed_at=r.completed_at,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


def _answers(payload: ResponsesPayload) -> list[Answer]:
    return [Answer(question_id=a.question_id, rating=a.rating, comment=a.comment) for a in payload.responses]


def _get_review(db: Session, review_id: uuid.UUID) -> PerformanceReview:
    review = db.get(PerformanceReview, review_id)
    if not review:
        raise NotFound("Review not found")
    return review


@router.post("", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    employee = db.get(User, payload.employee_id)
    if not employee or not employee.is_active:
        raise NotFound("Employee not found")
    template = db.get(ReviewTemplate, payload.template_id)
    if not template:
        raise NotFound("Template not found")

    review = services.instantiator(db).create_single_review(
        employee=employee,
        template=template,
        now=services.now(),
        manager_id=payload.manager_id,
        due_date=payload.due_date,
        actor_id=current_user.id,
    )
    return review_to_out(review, services.now())


@router.get("/{review_id}", response_model=ReviewDetailOut)
def get_review(
    review_id: uuid.UUID,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    """
    Review with the questions the viewer answers.

    HR outside the review sees every question. The employee only sees the
    manager's ratings once the review is completed.
    """
    review = _get_review(db, review_id)
    role = assert_can_view_review(current_user, review)

    if role is None:
        questions = review.template.questions
    else:
        questions = visible_questions(review.template, role)
    section_titles = {s.id: s.title for s in review.template.sections}

    hide_manager = role == ReviewRole.EMPLOYEE and review.status != ReviewStatus.COMPLETED.value
    base = review_to_out(review, services.now())
    return ReviewDetailOut(
        **base.model_dump(),
        viewer_role=role.value if role else None,
        questions=[
            QuestionOut(
                id=str(q.id),
                section_id=str(q.section_id),
                section_title=section_titles.get(q.section_id, ""),
                text=q.text,
                position=q.position,
                applicable_roles=sorted(r.value for r in q.applicable_roles or ()),
            )
            for q in questions
        ],
        responses=[
            ResponseOut(
                question_id=str(r.question_id),
                self_rating=r.self_rating,
                self_comment=r.self_comment,
                manager_rating=None if hide_manager else r.manager_rating,
                manager_comment=None if hide_manager else r.manager_comment,
            )
            for r in review.responses
        ],
    )


@router.put("/{review_id}/draft", response_model=ReviewOut)
def save_draft(
    review_id: uuid.UUID,
    payload: ResponsesPayload,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    review = services.workflow(db).save_draft(review_id, current_user.id, _answers(payload))
    return review_to_out(review, services.now())


@router.post("/{review_id}/employee-submission", response_model=ReviewOut)
def submit_self_evaluation(
    review_id: uuid.UUID,
    payload: ResponsesPayload,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    review = services.workflow(db).submit_employee_responses(review_id, current_user.id, _answers(payload))
    return review_to_out(review, services.now())


@router.post("/{review_id}/manager-submission", response_model=ReviewOut)
def submit_manager_review(
    review_id: uuid.UUID,
    payload: ResponsesPayload,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    review = services.workflow(db).submit_manager_responses(review_id, current_user.id, _answers(payload))
    return review_to_out(review, services.now())


@router.post("/{review_id}/remind")
def remind(
    review_id: uuid.UUID,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    _: User = Depends(require_roles(UserRole.HR)),
):
    notification = services.dispatcher(db).send_single_reminder(review_id, services.now())
    return {"sent": notification is not None}
