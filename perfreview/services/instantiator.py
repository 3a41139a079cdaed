import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterator, Sequence, TypeVar

from perfreview.core.errors import InstantiationFailed, ValidationFailed
from perfreview.core.outbox import Outbox
from perfreview.models.enums import NotificationType, ReviewStatus
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.review_template import ReviewTemplate
from perfreview.models.user import User
from perfreview.services import emails
from perfreview.services.deadlines import default_due_date
from perfreview.services.mailer import Mailer
from perfreview.services.notifications import (
    NotificationService,
    cycle_created_message,
    review_assigned_message,
    review_link,
)
from perfreview.services.store import ReviewStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass
class InstantiationResult:
    requested: int
    created_count: int = 0
    review_ids: list[uuid.UUID] = field(default_factory=list)


class ReviewInstantiator:
    """
    Creates one PENDING_EMPLOYEE review per employee of a cycle run.

    Inserts go out in batches, one conflict-ignoring INSERT per batch keyed on
    (employee_id, cycle_id), each committed on its own. Running a cycle twice
    against the same population therefore creates nothing the second time.
    Notifications and assignment emails are handed to the outbox after each
    batch commits.
    """

    def __init__(
        self,
        store: ReviewStore,
        notifications: NotificationService,
        mailer: Mailer,
        outbox: Outbox,
        *,
        batch_size: int = 50,
        email_batch_size: int = 50,
        notification_batch_size: int = 50,
        default_window_days: int = 14,
    ):
        self.store = store
        self.notifications = notifications
        self.mailer = mailer
        self.outbox = outbox
        self.batch_size = batch_size
        self.email_batch_size = email_batch_size
        self.notification_batch_size = notification_batch_size
        self.default_window_days = default_window_days

    def instantiate(self, cycle: ReviewCycle, employees: Sequence[User], run_date: date) -> InstantiationResult:
        # A self-managed employee would submit both phases of their own review
        unmanaged = [e for e in employees if e.manager_id is None or e.manager_id == e.id]
        if unmanaged:
            raise ValidationFailed(
                f"Cannot create reviews: {len(unmanaged)} employee(s) do not have assigned managers",
                {
                    "invalid_count": len(unmanaged),
                    "employee_ids": [str(e.id) for e in unmanaged],
                },
            )

        result = InstantiationResult(requested=len(employees))
        if not employees:
            return result

        cycle_id = cycle.id
        cycle_name = cycle.name
        template_id = cycle.template_id
        template_title = cycle.template.title
        due_date = cycle.due_date_for(run_date, self.default_window_days)

        for batch in chunked(list(employees), self.batch_size):
            rows = [
                {
                    "id": uuid.uuid4(),
                    "employee_id": e.id,
                    "manager_id": e.manager_id,
                    "template_id": template_id,
                    "cycle_id": cycle_id,
                    "status": ReviewStatus.PENDING_EMPLOYEE.value,
                    "due_date": due_date,
                    "is_draft": False,
                }
                for e in batch
            ]
            try:
                created_ids = self.store.create_reviews_bulk(rows, skip_duplicates=True)
                self.store.commit()
            except Exception as exc:
                self.store.rollback()
                logger.exception(
                    "Review batch failed",
                    extra={"cycle_id": str(cycle_id), "created_so_far": result.created_count},
                )
                raise InstantiationFailed(
                    f"Failed to create reviews for cycle {cycle_name!r}; "
                    f"{result.created_count} review(s) were created before the failure",
                    created_count=result.created_count,
                    review_ids=[str(rid) for rid in result.review_ids],
                ) from exc

            result.review_ids.extend(created_ids)
            result.created_count += len(created_ids)

            if created_ids:
                created_set = set(created_ids)
                created_pairs = [(e, row["id"]) for e, row in zip(batch, rows) if row["id"] in created_set]
                self._announce_batch(cycle_name, template_title, created_pairs)

        logger.info(
            "Reviews instantiated",
            extra={
                "cycle_id": str(cycle_id),
                "requested": result.requested,
                "created_count": result.created_count,
            },
        )
        return result

    def _announce_batch(self, cycle_name: str, template_title: str, created: list[tuple[User, uuid.UUID]]) -> None:
        # Tasks only get plain values; ORM objects stay in this thread
        title, message = cycle_created_message(cycle_name, template_title)
        for chunk in chunked(created, self.notification_batch_size):
            items = [(employee.id, review_link(review_id)) for employee, review_id in chunk]
            self.outbox.submit(
                self.notifications.create_many,
                items,
                NotificationType.CYCLE_CREATED,
                title,
                message,
                label="cycle-notifications",
            )

        mail = emails.cycle_assigned(cycle_name, template_title)
        for chunk in chunked(created, self.email_batch_size):
            recipients = ",".join(employee.email for employee, _ in chunk)
            self.outbox.submit(self.mailer.send, recipients, mail.subject, mail.html, label="cycle-assignment-email")

    def create_single_review(
        self,
        *,
        employee: User,
        template: ReviewTemplate,
        now: datetime,
        manager_id: uuid.UUID | None = None,
        due_date: date | None = None,
        actor_id: uuid.UUID | None = None,
    ) -> PerformanceReview:
        """Ad-hoc HR review outside any cycle."""
        manager_id = manager_id or employee.manager_id
        if manager_id is None:
            raise ValidationFailed(
                "Cannot create review: employee does not have an assigned manager",
                {"invalid_count": 1, "employee_ids": [str(employee.id)]},
            )
        if manager_id == employee.id:
            raise ValidationFailed("An employee cannot be their own reviewing manager")

        review = self.store.create_review(
            employee_id=employee.id,
            manager_id=manager_id,
            template_id=template.id,
            cycle_id=None,
            status=ReviewStatus.PENDING_EMPLOYEE.value,
            due_date=due_date or default_due_date(now, self.default_window_days),
            is_draft=False,
        )
        self.store.record_event(
            actor_id,
            "REVIEW_CREATED",
            "performance_review",
            review.id,
            {"employee_id": str(employee.id), "manager_id": str(manager_id), "template_id": str(template.id)},
        )
        self.store.commit()

        title, message = review_assigned_message(template.title)
        self.outbox.submit(
            self.notifications.create,
            employee.id,
            NotificationType.REVIEW_ASSIGNED,
            title,
            message,
            review_link(review.id),
            label="review-assigned-notification",
        )
        mail = emails.review_assigned(employee.name, template.title)
        self.outbox.submit(self.mailer.send, employee.email, mail.subject, mail.html, label="review-assigned-email")
        return review

