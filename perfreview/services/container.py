"""
Process-wide collaborators (session factory, mailer, outbox, clock).

Built once at startup and handed to the routers through ``get_services``;
tests override that dependency with inline and recording variants.
"""
from dataclasses import dataclass
from typing import Callable

from fastapi import Request
from sqlalchemy.orm import Session

from perfreview.core.clock import Clock, SystemClock
from perfreview.core.config import Settings
from perfreview.core.outbox import InlineOutbox, Outbox, ThreadPoolOutbox
from perfreview.services.instantiator import ReviewInstantiator
from perfreview.services.mailer import Mailer, build_mailer
from perfreview.services.notifications import NotificationService, ReminderDispatcher
from perfreview.services.scheduler import CycleScheduler
from perfreview.services.store import SqlAlchemyReviewStore
from perfreview.services.workflow import ReviewWorkflow


@dataclass
class Services:
    settings: Settings
    session_factory: Callable[[], Session]
    mailer: Mailer
    outbox: Outbox
    clock: Clock

    def now(self):
        return self.clock.now()

    def notifications(self) -> NotificationService:
        return NotificationService(self.session_factory, self.clock.now)

    def instantiator(self, db: Session) -> ReviewInstantiator:
        return ReviewInstantiator(
            SqlAlchemyReviewStore(db),
            self.notifications(),
            self.mailer,
            self.outbox,
            batch_size=self.settings.REVIEW_BATCH_SIZE,
            email_batch_size=self.settings.EMAIL_BATCH_SIZE,
            notification_batch_size=self.settings.NOTIFICATION_BATCH_SIZE,
            default_window_days=self.settings.DEFAULT_REVIEW_WINDOW_DAYS,
        )

    def scheduler(self, db: Session) -> CycleScheduler:
        return CycleScheduler(SqlAlchemyReviewStore(db), self.instantiator(db))

    def workflow(self, db: Session) -> ReviewWorkflow:
        return ReviewWorkflow(
            SqlAlchemyReviewStore(db),
            self.notifications(),
            self.mailer,
            self.outbox,
            self.clock.now,
        )

    def dispatcher(self, db: Session) -> ReminderDispatcher:
        return ReminderDispatcher(
            SqlAlchemyReviewStore(db),
            self.notifications(),
            self.mailer,
            self.outbox,
            app_url=self.settings.APP_URL,
            dedup_hours=self.settings.DEADLINE_DEDUP_HOURS,
        )

    def close(self) -> None:
        self.outbox.shutdown(wait=True)
        self.mailer.close()


def build_outbox(settings: Settings) -> Outbox:
    if settings.OUTBOX_MODE == "inline":
        return InlineOutbox()
    return ThreadPoolOutbox(max_workers=settings.OUTBOX_WORKERS)


def build_services(settings: Settings, session_factory: Callable[[], Session]) -> Services:
    return Services(
        settings=settings,
        session_factory=session_factory,
        mailer=build_mailer(settings),
        outbox=build_outbox(settings),
        clock=SystemClock(),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency; the app keeps the instance on its state from startup."""
    return request.app.state.services
