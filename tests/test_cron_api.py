from datetime import date, datetime, timedelta

from perfreview.core.config import Settings
from perfreview.models.enums import NotificationType
from perfreview.models.notification import Notification
from perfreview.models.performance_review import PerformanceReview

from tests.helpers import create_cycle, create_manager, create_review, create_template, create_user


def test_review_cycles_job(db_session, client):
    manager = create_manager(db_session)
    create_user(db_session, "e@local.test", "E", manager=manager)
    create_cycle(db_session, create_template(db_session), next_run_date=date(2025, 1, 10))

    r = client.post("/cron/review-cycles")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["cycles_processed"] == 1
    assert body["results"][0]["reviews_created"] == 1
    assert body["results"][0]["next_run_date"] == "2025-04-10"
    assert db_session.query(PerformanceReview).count() == 1

    # scheduler platforms call with GET
    r = client.get("/cron/review-cycles")
    assert r.json()["cycles_processed"] == 0


def test_due_tomorrow_notifies_exactly_once(db_session, client, clock):
    manager = create_manager(db_session)
    employee = create_user(db_session, "e@local.test", "E", manager=manager)
    tomorrow = clock.now().date() + timedelta(days=1)
    create_review(db_session, employee=employee, manager=manager, template=create_template(db_session), due_date=tomorrow)

    r = client.post("/cron/deadline-notifications")
    assert r.status_code == 200
    assert r.json()["one_day_reminders"] == 1

    clock.advance(hours=6)
    r = client.post("/cron/deadline-notifications")
    assert r.status_code == 200
    assert r.json()["one_day_reminders"] == 0

    notes = db_session.query(Notification).filter(Notification.type == NotificationType.REVIEW_DUE_SOON.value).all()
    assert len(notes) == 1
    assert notes[0].user_id == employee.id


def test_review_reminders_job(db_session, client, mailer, clock):
    manager = create_manager(db_session)
    employee = create_user(db_session, "e@local.test", "E", manager=manager)
    create_review(
        db_session, employee=employee, manager=manager, template=create_template(db_session),
        due_date=clock.now().date() + timedelta(days=2),
    )

    r = client.post("/cron/review-reminders")
    assert r.status_code == 200
    assert r.json()["reminders_sent"] == 1
    assert mailer.sent[0]["subject"] == "Reminder: Performance Review Due in 2 days"


def test_notification_cleanup_job(db_session, client, services, clock):
    employee = create_user(db_session, "e@local.test", "E")
    clock.advance(days=-31)
    services.notifications().create(employee.id, NotificationType.REVIEW_ASSIGNED, "Old", "old")
    clock.advance(days=31)

    r = client.post("/cron/notification-cleanup")
    assert r.status_code == 200
    assert r.json() == {"success": True, "deleted_count": 1}


def test_production_requires_cron_secret(client, services):
    services.settings = Settings(APP_ENV="production", CRON_SECRET="s3cret")

    r = client.post("/cron/review-cycles")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}

    r = client.post("/cron/review-cycles", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 401

    r = client.post("/cron/review-cycles", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 200


def test_production_without_secret_is_refused(client, services):
    services.settings = Settings(APP_ENV="production", CRON_SECRET=None)

    r = client.post("/cron/deadline-notifications", headers={"Authorization": "Bearer anything"})
    assert r.status_code == 500
    assert r.json() == {"error": "Cron secret not configured"}


def test_jobs_report_failures_instead_of_raising(client, services, monkeypatch):
    def broken(db):
        raise RuntimeError("boom")

    monkeypatch.setattr(services, "scheduler", broken)
    monkeypatch.setattr(services, "dispatcher", broken)

    r = client.post("/cron/review-cycles")
    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Failed to process review cycles"
    assert body["timestamp"] == datetime(2025, 1, 10, 9, 0).isoformat()

    r = client.post("/cron/review-reminders")
    assert r.status_code == 500
    assert r.json()["success"] is False
