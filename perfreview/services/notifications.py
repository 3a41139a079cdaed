import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from perfreview.core.errors import InvalidState, NotFound, ValidationFailed
from perfreview.core.outbox import Outbox
from perfreview.models.enums import NotificationType, PENDING_STATUSES, ReviewStatus
from perfreview.models.notification import Notification
from perfreview.services import emails
from perfreview.services.deadlines import days_until_due, format_deadline, should_remind
from perfreview.services.mailer import Mailer
from perfreview.services.store import ReviewStore, SqlAlchemyReviewStore

logger = logging.getLogger(__name__)


def review_link(review_id) -> str:
    return f"/reviews/{review_id}"


# In-app message texts, keyed by what happened

def review_assigned_message(template_name: str) -> tuple[str, str]:
    return "New Review Assigned", f"You have been assigned a {template_name} review to complete."


def review_due_soon_message(template_name: str, days: int) -> tuple[str, str]:
    if days == 0:
        return "Review Due Today", f"Your {template_name} review is due today."
    plural = "" if days == 1 else "s"
    return "Review Due Soon", f"Your {template_name} review is due in {days} day{plural}."


def review_overdue_message(template_name: str) -> tuple[str, str]:
    return (
        "Review Overdue",
        f"Your {template_name} review is now overdue. Please complete it as soon as possible.",
    )


def review_submitted_message(employee_name: str, template_name: str) -> tuple[str, str]:
    return "Review Submitted", f"{employee_name} has submitted their {template_name} self-evaluation."


def review_completed_message(template_name: str) -> tuple[str, str]:
    return "Review Completed", f"Your {template_name} review has been completed by your manager."


def cycle_created_message(cycle_name: str, template_name: str) -> tuple[str, str]:
    return (
        "New Review Cycle",
        f"You have been assigned a review for the {cycle_name} cycle using the {template_name} template.",
    )


class NotificationService:
    """
    In-app notifications.

    ``create`` is called from side-effect tasks and must never break the
    action that triggered it, so it works in its own session and swallows
    (and logs) persistence errors. The recipient-facing operations run in the
    request's session and raise as usual.
    """

    def __init__(self, session_factory: Callable[[], Session], now: Callable[[], datetime]):
        self._session_factory = session_factory
        self._now = now

    def create(
        self,
        user_id: uuid.UUID,
        type: NotificationType | str,
        title: str,
        message: str,
        link: str | None = None,
    ) -> Notification | None:
        type_value = type.value if isinstance(type, NotificationType) else type
        session = self._session_factory()
        try:
            notification = SqlAlchemyReviewStore(session).create_notification(
                user_id=user_id,
                type=type_value,
                title=title,
                message=message,
                link=link,
                is_read=False,
                created_at=self._now(),
            )
            session.commit()
            return notification
        except Exception:
            session.rollback()
            logger.exception(
                "Failed to create notification",
                extra={"user_id": str(user_id), "type": type_value},
            )
            return None
        finally:
            session.close()

    def create_many(
        self,
        items: list[tuple[uuid.UUID, str | None]],
        type: NotificationType | str,
        title: str,
        message: str,
    ) -> int:
        """One notification per (user_id, link) pair; returns how many were stored."""
        created = 0
        for user_id, link in items:
            if self.create(user_id, type, title, message, link) is not None:
                created += 1
        return created

    def list_for_user(self, db: Session, user_id: uuid.UUID, limit: int | None = 10) -> list[Notification]:
        query = (
            db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def unread_count(self, db: Session, user_id: uuid.UUID) -> int:
        return (
            db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        )

    def _get_owned(self, db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        notification = db.get(Notification, notification_id)
        # Someone else's notification looks exactly like a missing one
        if not notification or notification.user_id != user_id:
            raise NotFound("Notification not found")
        return notification

    def mark_read(self, db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        notification = self._get_owned(db, notification_id, user_id)
        notification.is_read = True
        db.commit()
        return notification

    def mark_all_read(self, db: Session, user_id: uuid.UUID) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        db.commit()
        return result.rowcount or 0

    def delete(self, db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        notification = self._get_owned(db, notification_id, user_id)
        db.delete(notification)
        db.commit()

    def cleanup_older_than(self, now: datetime, days: int = 30) -> int:
        """Retention job: drop notifications created more than ``days`` ago."""
        cutoff = now - timedelta(days=days)
        session = self._session_factory()
        try:
            deleted = SqlAlchemyReviewStore(session).delete_notifications_before(cutoff)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        logger.info("Cleaned up old notifications", extra={"deleted": deleted, "cutoff": cutoff.isoformat()})
        return deleted


@dataclass
class DeadlineSweepResult:
    reviews_checked: int = 0
    three_day_reminders: int = 0
    one_day_reminders: int = 0
    overdue_reminders: int = 0
    errors: int = 0

    @property
    def total_created(self) -> int:
        return self.three_day_reminders + self.one_day_reminders + self.overdue_reminders

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BroadcastResult:
    cycle_id: uuid.UUID
    employee_recipients: int
    manager_recipients: int
    emails_queued: int


@dataclass
class ReminderRunResult:
    reviews_checked: int = 0
    reminders_sent: int = 0
    failures: int = 0


class ReminderDispatcher:
    def __init__(
        self,
        store: ReviewStore,
        notifications: NotificationService,
        mailer: Mailer,
        outbox: Outbox,
        *,
        app_url: str,
        dedup_hours: int = 24,
    ):
        self.store = store
        self.notifications = notifications
        self.mailer = mailer
        self.outbox = outbox
        self.app_url = app_url.rstrip("/")
        self.dedup_hours = dedup_hours

    def run_deadline_sweep(self, now: datetime) -> DeadlineSweepResult:
        """
        Daily job: REVIEW_DUE_SOON notifications for self-evaluations due in
        exactly 3 days, exactly 1 day, or already overdue.

        A notification for the same employee and review link created in the
        last ``dedup_hours`` suppresses a new one, so repeated runs on the
        same day stay quiet.
        """
        result = DeadlineSweepResult()
        since = now - timedelta(hours=self.dedup_hours)

        reviews = self.store.list_pending_reviews(
            statuses=[ReviewStatus.PENDING_EMPLOYEE.value], with_due_date=True
        )
        for review in reviews:
            result.reviews_checked += 1
            days = days_until_due(review.due_date, now)
            if days < 0:
                bucket = "overdue_reminders"
            elif days == 1:
                bucket = "one_day_reminders"
            elif days == 3:
                bucket = "three_day_reminders"
            else:
                continue

            try:
                link = review_link(review.id)
                existing = self.store.find_recent_notification(
                    review.employee_id, NotificationType.REVIEW_DUE_SOON.value, link, since
                )
                if existing is not None:
                    continue

                template_title = review.template.title
                if days < 0:
                    title, message = review_overdue_message(template_title)
                else:
                    title, message = review_due_soon_message(template_title, days)

                created = self.notifications.create(
                    review.employee_id, NotificationType.REVIEW_DUE_SOON, title, message, link
                )
                if created is None:
                    result.errors += 1
                    continue
                setattr(result, bucket, getattr(result, bucket) + 1)
            except Exception:
                logger.exception("Deadline notification failed", extra={"review_id": str(review.id)})
                result.errors += 1

        logger.info("Deadline notifications processed", extra=result.to_dict())
        return result

    def broadcast_cycle_reminders(self, cycle_id: uuid.UUID, now: datetime) -> BroadcastResult:
        """HR action: one grouped email per pending phase of a cycle."""
        cycle = self.store.get_cycle(cycle_id)
        if cycle is None:
            raise NotFound("Review cycle not found")

        reviews = self.store.list_pending_reviews(cycle_id=cycle.id)
        employee_emails = _unique(
            r.employee.email for r in reviews if r.status == ReviewStatus.PENDING_EMPLOYEE.value
        )
        manager_emails = _unique(
            r.manager.email for r in reviews if r.status == ReviewStatus.PENDING_MANAGER.value
        )

        deadline = _cycle_deadline_text(cycle, reviews)
        queued = 0
        for recipients, manager_phase in ((employee_emails, False), (manager_emails, True)):
            if not recipients:
                continue
            mail = emails.cycle_reminder(cycle.name, deadline, manager_phase=manager_phase)
            self.outbox.submit(
                self.mailer.send, ",".join(recipients), mail.subject, mail.html, label="cycle-reminder-email"
            )
            queued += 1

        logger.info(
            "Cycle reminders queued",
            extra={
                "cycle_id": str(cycle.id),
                "employee_recipients": len(employee_emails),
                "manager_recipients": len(manager_emails),
            },
        )
        return BroadcastResult(
            cycle_id=cycle.id,
            employee_recipients=len(employee_emails),
            manager_recipients=len(manager_emails),
            emails_queued=queued,
        )

    def send_review_reminders(self, now: datetime) -> ReminderRunResult:
        """
        Daily email reminders for both pending phases.

        ``last_reminder_at`` is only recorded after the mail went out, so a
        failed send is retried on the next run.
        """
        result = ReminderRunResult()
        reviews = self.store.list_pending_reviews(statuses=PENDING_STATUSES, with_due_date=True)

        for review in reviews:
            result.reviews_checked += 1
            if not should_remind(review.due_date, review.last_reminder_at, now):
                continue

            manager_phase = review.status == ReviewStatus.PENDING_MANAGER.value
            recipient = review.manager if manager_phase else review.employee
            mail = emails.review_reminder(
                recipient_name=recipient.name,
                review_title=review.template.title,
                deadline_text=format_deadline(review.due_date, now),
                review_url=f"{self.app_url}{review_link(review.id)}",
                manager_phase=manager_phase,
            )

            try:
                sent = self.mailer.send(recipient.email, mail.subject, mail.html)
            except Exception:
                logger.exception("Reminder email failed", extra={"review_id": str(review.id)})
                sent = False

            if not sent:
                result.failures += 1
                continue

            review.last_reminder_at = now
            result.reminders_sent += 1

        self.store.commit()
        logger.info(
            "Review reminders processed",
            extra={
                "reviews_checked": result.reviews_checked,
                "reminders_sent": result.reminders_sent,
                "failures": result.failures,
            },
        )
        return result

    def send_single_reminder(self, review_id: uuid.UUID, now: datetime) -> Notification | None:
        """HR action: one reminder notification to whoever the review is waiting on."""
        review = self.store.find_review(review_id)
        if review is None:
            raise NotFound("Review not found")
        if review.status not in PENDING_STATUSES:
            raise InvalidState("Review is already completed")
        if review.due_date is None:
            raise ValidationFailed("Review has no due date")

        recipient_id = review.manager_id if review.status == ReviewStatus.PENDING_MANAGER.value else review.employee_id
        days = days_until_due(review.due_date, now)
        if days < 0:
            title, message = review_overdue_message(review.template.title)
        else:
            title, message = review_due_soon_message(review.template.title, days)

        return self.notifications.create(
            recipient_id, NotificationType.REVIEW_DUE_SOON, title, message, review_link(review.id)
        )


def _unique(values) -> list[str]:
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(v, None)
    return list(seen)


def _cycle_deadline_text(cycle, reviews) -> str:
    due = cycle.due_date
    if due is None:
        dates = [r.due_date for r in reviews if r.due_date is not None]
        due = min(dates) if dates else None
    return due.isoformat() if due else "not set"
