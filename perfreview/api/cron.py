"""
Endpoints hit by the platform scheduler.

They never raise: every failure is logged and reported as
``{"success": false, "error": ...}`` with a 500 so the scheduler records it.
"""
import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from perfreview.core.security import verify_cron_secret
from perfreview.db.session import get_db
from perfreview.schemas.jobs import CleanupOut, DeadlineSweepOut, ReminderRunOut, SchedulerSummaryOut
from perfreview.schemas.review_cycle import CycleRunOut
from perfreview.services.container import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def _refused(authorization: str | None, services: Services) -> JSONResponse | None:
    error = verify_cron_secret(
        authorization, services.settings.CRON_SECRET, services.settings.is_production
    )
    if error is None:
        return None
    if error == "Unauthorized":
        return JSONResponse(status_code=401, content={"error": error})
    return JSONResponse(status_code=500, content={"error": error})


def _failed(message: str, services: Services) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": message, "timestamp": services.now().isoformat()},
    )


@router.api_route("/review-cycles", methods=["GET", "POST"], response_model=SchedulerSummaryOut)
def run_review_cycles(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    refused = _refused(authorization, services)
    if refused:
        return refused

    try:
        summary = services.scheduler(db).process_due_cycles(services.now())
    except Exception:
        db.rollback()
        logger.exception("Review cycle job failed")
        return _failed("Failed to process review cycles", services)

    return SchedulerSummaryOut(
        message=f"Processed {summary.cycles_processed} cycle(s)",
        processed_at=summary.processed_at,
        cycles_processed=summary.cycles_processed,
        results=[
            CycleRunOut(
                cycle_id=str(r.cycle_id),
                cycle_name=r.cycle_name,
                success=r.success,
                reviews_requested=r.reviews_requested,
                reviews_created=r.reviews_created,
                next_run_date=r.next_run_date,
                error=r.error,
            )
            for r in summary.results
        ],
    )


@router.api_route("/deadline-notifications", methods=["GET", "POST"], response_model=DeadlineSweepOut)
def run_deadline_notifications(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    refused = _refused(authorization, services)
    if refused:
        return refused

    try:
        result = services.dispatcher(db).run_deadline_sweep(services.now())
    except Exception:
        db.rollback()
        logger.exception("Deadline notification job failed")
        return _failed("Failed to send deadline notifications", services)

    return DeadlineSweepOut(
        message=f"Created {result.total_created} deadline notification(s)",
        **result.to_dict(),
    )


@router.api_route("/review-reminders", methods=["GET", "POST"], response_model=ReminderRunOut)
def run_review_reminders(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    refused = _refused(authorization, services)
    if refused:
        return refused

    try:
        result = services.dispatcher(db).send_review_reminders(services.now())
    except Exception:
        db.rollback()
        logger.exception("Review reminder job failed")
        return _failed("Failed to send review reminders", services)

    return ReminderRunOut(
        message=f"Sent {result.reminders_sent} reminder(s)",
        reviews_checked=result.reviews_checked,
        reminders_sent=result.reminders_sent,
        failures=result.failures,
    )


@router.api_route("/notification-cleanup", methods=["GET", "POST"], response_model=CleanupOut)
def run_notification_cleanup(
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
):
    refused = _refused(authorization, services)
    if refused:
        return refused

    try:
        deleted = services.notifications().cleanup_older_than(
            services.now(), days=services.settings.NOTIFICATION_RETENTION_DAYS
        )
    except Exception:
        logger.exception("Notification cleanup job failed")
        return _failed("Failed to clean up notifications", services)

    return CleanupOut(deleted_count=deleted)
