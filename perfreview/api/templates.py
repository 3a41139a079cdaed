import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from perfreview.core.audit import log_event
from perfreview.core.errors import InvalidState, NotFound
from perfreview.core.rbac import require_roles
from perfreview.core.security import get_current_user
from perfreview.db.session import get_db
from perfreview.models.enums import UserRole
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.review_template import ReviewTemplate, TemplateQuestion, TemplateSection
from perfreview.models.user import User
from perfreview.schemas.template import (
    TemplateCreate,
    TemplateOut,
    TemplateQuestionOut,
    TemplateSectionOut,
)

router = APIRouter(prefix="/templates", tags=["templates"])


def to_out(t: ReviewTemplate) -> TemplateOut:
    return TemplateOut(
        id=str(t.id),
        title=t.title,
        description=t.description,
        created_by_id=str(t.created_by_id) if t.created_by_id else None,
        created_at=t.created_at,
        sections=[
            TemplateSectionOut(
                id=str(s.id),
                title=s.title,
                position=s.position,
                questions=[
                    TemplateQuestionOut(
                        id=str(q.id),
                        text=q.text,
                        position=q.position,
                        applicable_roles=sorted(r.value for r in q.applicable_roles or ()),
                    )
                    for q in s.questions
                ],
            )
            for s in t.sections
        ],
    )


def _get_template(db: Session, template_id: uuid.UUID) -> ReviewTemplate:
    t = db.get(ReviewTemplate, template_id)
    if not t:
        raise NotFound("Template not found")
    return t


@router.get("", response_model=list[TemplateOut])
def list_templates(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return [to_out(t) for t in db.query(ReviewTemplate).order_by(ReviewTemplate.title.asc()).all()]


@router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    t = ReviewTemplate(
        title=payload.title,
        description=payload.description,
        created_by_id=current_user.id,
    )
    for s_pos, section in enumerate(payload.sections, start=1):
        s = TemplateSection(title=section.title, position=s_pos)
        for q_pos, question in enumerate(section.questions, start=1):
            s.questions.append(
                TemplateQuestion(
                    text=question.text,
                    position=q_pos,
                    applicable_roles=frozenset(question.applicable_roles),
                )
            )
        t.sections.append(s)

    db.add(t)
    db.flush()

    log_event(
        db=db,
        actor_id=current_user.id,
        action="TEMPLATE_CREATED",
        entity_type="review_template",
        entity_id=t.id,
        metadata={
            "title": t.title,
            "sections": len(payload.sections),
            "questions": sum(len(s.questions) for s in payload.sections),
        },
    )

    db.commit()
    db.refresh(t)
    return to_out(t)


@router.get("/{template_id}", response_model=TemplateOut)
def get_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return to_out(_get_template(db, template_id))


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.HR)),
):
    t = _get_template(db, template_id)

    in_use = (
        db.query(ReviewCycle.id).filter(ReviewCycle.template_id == t.id).first() is not None
        or db.query(PerformanceReview.id).filter(PerformanceReview.template_id == t.id).first() is not None
    )
    if in_use:
        raise InvalidState("Template is used by a cycle or a review and cannot be deleted")

    log_event(
        db=db,
        actor_id=current_user.id,
        action="TEMPLATE_DELETED",
        entity_type="review_template",
        entity_id=t.id,
        metadata={"title": t.title},
    )
    db.delete(t)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
