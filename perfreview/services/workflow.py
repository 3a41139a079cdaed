import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from perfreview.core.errors import AppError, InvalidState, NotAuthorized, NotFound, ValidationFailed
from perfreview.core.outbox import Outbox
from perfreview.models.enums import NotificationType, ReviewRole, ReviewStatus
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_response import ReviewResponse
from perfreview.services import emails
from perfreview.services.mailer import Mailer
from perfreview.services.notifications import (
    NotificationService,
    review_completed_message,
    review_link,
    review_submitted_message,
)
from perfreview.services.questions import is_visible, visible_questions
from perfreview.services.store import ReviewStore

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 4

# Which response columns each participant writes
FIELDS_BY_ROLE = {
    ReviewRole.EMPLOYEE: ("self_rating", "self_comment"),
    ReviewRole.MANAGER: ("manager_rating", "manager_comment"),
}


class SubmissionFailed(AppError):
    status_code = 500
    error_code = "SUBMISSION_FAILED"


@dataclass
class Answer:
    question_id: uuid.UUID
    rating: int | None = None
    comment: str | None = None


def overall_score(responses: Iterable[ReviewResponse]) -> float | None:
    """Mean of per-question ratings, manager rating preferred; None without ratings."""
    ratings = [r.effective_rating for r in responses if r.effective_rating is not None]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)


class ReviewWorkflow:
    """
    PENDING_EMPLOYEE -> PENDING_MANAGER -> COMPLETED.

    Only the review's employee acts in PENDING_EMPLOYEE and only its manager
    in PENDING_MANAGER; participants are matched by id, never by role, so a
    manager can be reviewed by their own manager. Response writes and the
    status change of a submission commit together or not at all.
    """

    def __init__(
        self,
        store: ReviewStore,
        notifications: NotificationService,
        mailer: Mailer,
        outbox: Outbox,
        now: Callable[[], datetime],
    ):
        self.store = store
        self.notifications = notifications
        self.mailer = mailer
        self.outbox = outbox
        self._now = now

    def _load(self, review_id: uuid.UUID) -> PerformanceReview:
        review = self.store.find_review(review_id, for_update=True)
        if review is None:
            raise NotFound("Review not found")
        return review

    def submit_employee_responses(
        self, review_id: uuid.UUID, actor_id: uuid.UUID, answers: list[Answer]
    ) -> PerformanceReview:
        review = self._load(review_id)
        if review.employee_id != actor_id:
            raise NotAuthorized("Only the employee being reviewed can submit the self-evaluation")
        if review.status != ReviewStatus.PENDING_EMPLOYEE.value:
            raise InvalidState(
                f"Self-evaluation cannot be submitted while the review is {review.status}",
                {"status": review.status},
            )

        def transition():
            self._require_complete(review, ReviewRole.EMPLOYEE)
            self.store.update_review_status(
                review.id, ReviewStatus.PENDING_MANAGER.value, is_draft=False
            )

        self._apply(review, actor_id, ReviewRole.EMPLOYEE, answers, transition, "REVIEW_EMPLOYEE_SUBMITTED")
        self._after_employee_submit(review)
        return review

    def submit_manager_responses(
        self, review_id: uuid.UUID, actor_id: uuid.UUID, answers: list[Answer]
    ) -> PerformanceReview:
        review = self._load(review_id)
        if review.manager_id != actor_id:
            raise NotAuthorized("Only the assigned manager can complete this review")
        if review.status != ReviewStatus.PENDING_MANAGER.value:
            raise InvalidState(
                f"Manager review cannot be submitted while the review is {review.status}",
                {"status": review.status},
            )

        def transition():
            responses = self._require_complete(review, ReviewRole.MANAGER)
            self.store.update_review_status(
                review.id,
                ReviewStatus.COMPLETED.value,
                is_draft=False,
                overall_score=overall_score(responses),
                completed_at=self._now(),
            )

        self._apply(review, actor_id, ReviewRole.MANAGER, answers, transition, "REVIEW_COMPLETED")
        self._after_manager_submit(review)
        return review

    def save_draft(self, review_id: uuid.UUID, actor_id: uuid.UUID, answers: list[Answer]) -> PerformanceReview:
        """Autosave: persists answers, never changes status, nothing has to be complete."""
        review = self._load(review_id)
        role = self._draft_role(review, actor_id)

        def mark_draft():
            review.is_draft = True

        self._apply(review, actor_id, role, answers, mark_draft, None)
        return review

    def _draft_role(self, review: PerformanceReview, actor_id: uuid.UUID) -> ReviewRole:
        if actor_id not in (review.employee_id, review.manager_id):
            raise NotAuthorized("Only the review's participants can save drafts")

        if review.status == ReviewStatus.PENDING_EMPLOYEE.value:
            if actor_id == review.employee_id:
                return ReviewRole.EMPLOYEE
            raise InvalidState("The review is waiting for the employee's self-evaluation", {"status": review.status})
        if review.status == ReviewStatus.PENDING_MANAGER.value:
            if actor_id == review.manager_id:
                return ReviewRole.MANAGER
            raise InvalidState("The review is waiting for the manager", {"status": review.status})
        raise InvalidState("Completed reviews cannot be edited", {"status": review.status})

    def _validate(self, review: PerformanceReview, role: ReviewRole, answers: list[Answer]) -> None:
        questions = {q.id: q for q in review.template.questions}

        unknown = [str(a.question_id) for a in answers if a.question_id not in questions]
        if unknown:
            raise ValidationFailed(
                f"{len(unknown)} question(s) are not part of this review",
                {"question_ids": unknown},
            )

        hidden = [str(a.question_id) for a in answers if not is_visible(questions[a.question_id], role)]
        if hidden:
            raise ValidationFailed(
                f"{len(hidden)} question(s) are not answered by the {role.value.lower()}",
                {"question_ids": hidden},
            )

        out_of_range = [
            str(a.question_id)
            for a in answers
            if a.rating is not None and not (MIN_RATING <= a.rating <= MAX_RATING)
        ]
        if out_of_range:
            raise ValidationFailed(
                f"Ratings must be between {MIN_RATING} and {MAX_RATING}",
                {"question_ids": out_of_range},
            )

    def _require_complete(self, review: PerformanceReview, role: ReviewRole) -> list[ReviewResponse]:
        rating_field = FIELDS_BY_ROLE[role][0]
        responses = self.store.list_responses(review.id)
        by_question = {r.question_id: r for r in responses}
        missing = [
            str(q.id)
            for q in visible_questions(review.template, role)
            if by_question.get(q.id) is None or getattr(by_question[q.id], rating_field) is None
        ]
        if missing:
            raise ValidationFailed(
                f"{len(missing)} question(s) still need a rating",
                {"question_ids": missing},
            )
        return responses

    def _apply(self, review, actor_id, role, answers, finish, audit_action) -> None:
        rating_field, comment_field = FIELDS_BY_ROLE[role]
        previous_status = review.status

        try:
            self._validate(review, role, answers)
            for answer in answers:
                # Only what was sent; a blank field keeps an earlier draft value
                fields = {}
                if answer.rating is not None:
                    fields[rating_field] = answer.rating
                if answer.comment is not None:
                    fields[comment_field] = answer.comment
                self.store.upsert_response(review.id, answer.question_id, **fields)

            finish()

            if audit_action:
                self.store.record_event(
                    actor_id,
                    audit_action,
                    "performance_review",
                    review.id,
                    {"from": previous_status, "to": review.status, "answers": len(answers)},
                )
            self.store.commit()
        except AppError:
            self.store.rollback()
            raise
        except Exception as exc:
            self.store.rollback()
            logger.exception("Review update failed", extra={"review_id": str(review.id), "role": role.value})
            raise SubmissionFailed("Failed to save the review. Please try again.") from exc

    def _after_employee_submit(self, review: PerformanceReview) -> None:
        employee_name = review.employee.name
        manager_id, manager_name, manager_email = review.manager_id, review.manager.name, review.manager.email
        template_title = review.template.title

        title, message = review_submitted_message(employee_name, template_title)
        self.outbox.submit(
            self.notifications.create,
            manager_id,
            NotificationType.REVIEW_SUBMITTED,
            title,
            message,
            review_link(review.id),
            label="review-submitted-notification",
        )
        mail = emails.self_evaluation_submitted(employee_name, manager_name, template_title)
        self.outbox.submit(self.mailer.send, manager_email, mail.subject, mail.html, label="review-submitted-email")

    def _after_manager_submit(self, review: PerformanceReview) -> None:
        employee, manager = review.employee, review.manager
        template_title = review.template.title
        link = review_link(review.id)

        title, message = review_completed_message(template_title)
        self.outbox.submit(
            self.notifications.create,
            employee.id,
            NotificationType.REVIEW_COMPLETED,
            title,
            message,
            link,
            label="review-completed-notification",
        )
        self.outbox.submit(
            self.notifications.create,
            manager.id,
            NotificationType.REVIEW_COMPLETED,
            title,
            f"You completed the {template_title} review for {employee.name}.",
            link,
            label="review-completed-notification",
        )
        mail = emails.review_completed(employee.name, manager.name, template_title)
        self.outbox.submit(
            self.mailer.send,
            ",".join([employee.email, manager.email]),
            mail.subject,
            mail.html,
            label="review-completed-email",
        )
