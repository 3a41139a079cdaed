from datetime import date

import pytest

from perfreview.core.errors import InvalidState, NotAuthorized, ValidationFailed
from perfreview.models.audit_event import AuditEvent
from perfreview.models.enums import NotificationType, ReviewStatus
from perfreview.models.notification import Notification
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_response import ReviewResponse
from perfreview.services.workflow import Answer, overall_score

from tests.helpers import (
    create_manager,
    create_review,
    create_template,
    create_user,
    question_by_text,
)


@pytest.fixture()
def setup(db_session):
    manager = create_manager(db_session)
    employee = create_user(db_session, "emp@local.test", "Eli Employee", manager=manager)
    template = create_template(db_session)
    review = create_review(
        db_session, employee=employee, manager=manager, template=template, due_date=date(2025, 1, 24)
    )
    return {
        "manager": manager,
        "employee": employee,
        "review": review,
        "shared": question_by_text(template, "How did"),
        "own": question_by_text(template, "What are you"),
        "mgr_only": question_by_text(template, "How would you rate"),
    }


def _reload(db, review):
    db.expire_all()
    return db.get(PerformanceReview, review.id)


def test_employee_submission_moves_review_to_manager(db_session, services, mailer, setup):
    s = setup
    services.workflow(db_session).submit_employee_responses(
        s["review"].id,
        s["employee"].id,
        [Answer(s["shared"].id, 3, "Solid quarter"), Answer(s["own"].id, 4)],
    )

    review = _reload(db_session, s["review"])
    assert review.status == ReviewStatus.PENDING_MANAGER.value
    assert review.is_draft is False

    note = db_session.query(Notification).one()
    assert note.user_id == s["manager"].id
    assert note.type == NotificationType.REVIEW_SUBMITTED.value
    assert "Eli Employee" in note.message
    assert mailer.sent[0]["to"] == [s["manager"].email]

    assert db_session.query(AuditEvent).filter(AuditEvent.action == "REVIEW_EMPLOYEE_SUBMITTED").count() == 1


def test_incomplete_submission_is_rejected_and_nothing_is_saved(db_session, services, setup):
    s = setup
    with pytest.raises(ValidationFailed) as exc:
        services.workflow(db_session).submit_employee_responses(
            s["review"].id, s["employee"].id, [Answer(s["shared"].id, 3)]
        )

    assert exc.value.details["question_ids"] == [str(s["own"].id)]
    assert _reload(db_session, s["review"]).status == ReviewStatus.PENDING_EMPLOYEE.value
    assert db_session.query(ReviewResponse).count() == 0


def test_employee_cannot_answer_manager_questions(db_session, services, setup):
    s = setup
    with pytest.raises(ValidationFailed):
        services.workflow(db_session).submit_employee_responses(
            s["review"].id,
            s["employee"].id,
            [Answer(s["shared"].id, 3), Answer(s["own"].id, 3), Answer(s["mgr_only"].id, 3)],
        )


def test_rating_out_of_range(db_session, services, setup):
    s = setup
    with pytest.raises(ValidationFailed) as exc:
        services.workflow(db_session).submit_employee_responses(
            s["review"].id, s["employee"].id, [Answer(s["shared"].id, 5), Answer(s["own"].id, 0)]
        )
    assert "between 1 and 4" in exc.value.message
    assert len(exc.value.details["question_ids"]) == 2


def test_only_participants_act_in_their_phase(db_session, services, setup):
    s = setup
    outsider = create_user(db_session, "outsider@local.test", "Outsider", manager=s["manager"])
    workflow = services.workflow(db_session)
    answers = [Answer(s["shared"].id, 3), Answer(s["own"].id, 3)]

    with pytest.raises(NotAuthorized):
        workflow.submit_employee_responses(s["review"].id, outsider.id, answers)
    with pytest.raises(NotAuthorized):
        workflow.submit_employee_responses(s["review"].id, s["manager"].id, answers)
    with pytest.raises(NotAuthorized):
        workflow.submit_manager_responses(s["review"].id, s["employee"].id, answers)
    with pytest.raises(InvalidState):
        workflow.submit_manager_responses(s["review"].id, s["manager"].id, answers)


@pytest.mark.parametrize("status", [ReviewStatus.PENDING_MANAGER, ReviewStatus.COMPLETED])
def test_employee_submission_outside_their_phase_changes_nothing(db_session, services, setup, status):
    s = setup
    s["review"].status = status.value
    db_session.commit()

    with pytest.raises(InvalidState):
        services.workflow(db_session).submit_employee_responses(
            s["review"].id, s["employee"].id, [Answer(s["shared"].id, 3), Answer(s["own"].id, 3)]
        )

    assert _reload(db_session, s["review"]).status == status.value
    assert db_session.query(ReviewResponse).count() == 0


def test_full_flow_computes_score_and_completion(db_session, services, clock, mailer, setup):
    s = setup
    workflow = services.workflow(db_session)
    workflow.submit_employee_responses(
        s["review"].id, s["employee"].id, [Answer(s["shared"].id, 2), Answer(s["own"].id, 3)]
    )
    mailer.sent.clear()

    clock.advance(days=2)
    workflow.submit_manager_responses(
        s["review"].id,
        s["manager"].id,
        [Answer(s["shared"].id, 4, "Great work"), Answer(s["mgr_only"].id, 2)],
    )

    review = _reload(db_session, s["review"])
    assert review.status == ReviewStatus.COMPLETED.value
    assert review.completed_at == clock.now()
    # shared -> manager 4, own -> self 3, mgr_only -> manager 2
    assert review.overall_score == 3.0

    completed = db_session.query(Notification).filter(
        Notification.type == NotificationType.REVIEW_COMPLETED.value
    ).all()
    assert {n.user_id for n in completed} == {s["employee"].id, s["manager"].id}
    assert sorted(mailer.sent[0]["to"]) == sorted([s["employee"].email, s["manager"].email])

    with pytest.raises(InvalidState):
        workflow.submit_manager_responses(s["review"].id, s["manager"].id, [])


def test_draft_keeps_status_and_feeds_submission(db_session, services, setup):
    s = setup
    workflow = services.workflow(db_session)

    workflow.save_draft(s["review"].id, s["employee"].id, [Answer(s["shared"].id, 2, "first pass")])
    review = _reload(db_session, s["review"])
    assert review.status == ReviewStatus.PENDING_EMPLOYEE.value
    assert review.is_draft is True

    # the shared rating comes from the draft
    workflow.submit_employee_responses(s["review"].id, s["employee"].id, [Answer(s["own"].id, 4)])
    review = _reload(db_session, s["review"])
    assert review.status == ReviewStatus.PENDING_MANAGER.value

    shared = db_session.query(ReviewResponse).filter(ReviewResponse.question_id == s["shared"].id).one()
    assert shared.self_rating == 2
    assert shared.self_comment == "first pass"


def test_draft_out_of_turn(db_session, services, setup):
    s = setup
    outsider = create_user(db_session, "outsider@local.test", "Outsider")
    workflow = services.workflow(db_session)

    with pytest.raises(InvalidState):
        workflow.save_draft(s["review"].id, s["manager"].id, [Answer(s["shared"].id, 3)])
    with pytest.raises(NotAuthorized):
        workflow.save_draft(s["review"].id, outsider.id, [])


def test_manager_reviewed_by_their_own_manager(db_session, services):
    director = create_manager(db_session, "director@local.test", "Dana Director")
    lead = create_manager(db_session, "lead@local.test", "Lee Lead", manager=director)
    template = create_template(db_session, questions=[("Overall?", set())])
    q = template.questions[0]
    review = create_review(db_session, employee=lead, manager=director, template=template)

    workflow = services.workflow(db_session)
    workflow.submit_employee_responses(review.id, lead.id, [Answer(q.id, 3)])
    workflow.submit_manager_responses(review.id, director.id, [Answer(q.id, 4)])

    assert _reload(db_session, review).status == ReviewStatus.COMPLETED.value


def test_overall_score_prefers_manager_rating():
    assert overall_score([]) is None
    assert overall_score([ReviewResponse(self_rating=None, manager_rating=None)]) is None
    assert overall_score(
        [
            ReviewResponse(self_rating=1, manager_rating=4),
            ReviewResponse(self_rating=3, manager_rating=None),
            ReviewResponse(self_rating=None, manager_rating=2),
        ]
    ) == 3.0
    assert overall_score(
        [ReviewResponse(self_rating=1), ReviewResponse(self_rating=2), ReviewResponse(self_rating=2)]
    ) == 1.67
