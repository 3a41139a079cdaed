from datetime import date, datetime, timedelta

import pytest

from perfreview.core.errors import InvalidState, NotFound
from perfreview.models.enums import NotificationType, ReviewStatus
from perfreview.models.notification import Notification
from perfreview.models.performance_review import PerformanceReview

from tests.helpers import (
    RecordingMailer,
    create_cycle,
    create_manager,
    create_review,
    create_template,
    create_user,
    headers,
)

TODAY = date(2025, 1, 10)


def _in(days: int) -> date:
    return TODAY + timedelta(days=days)


@pytest.fixture()
def team(db_session):
    manager = create_manager(db_session)
    employees = [
        create_user(db_session, f"e{i}@local.test", f"Employee {i}", manager=manager) for i in range(6)
    ]
    return manager, employees, create_template(db_session)


def _notifications(db, type_: NotificationType):
    db.expire_all()
    return db.query(Notification).filter(Notification.type == type_.value).all()


def test_deadline_sweep_buckets(db_session, services, team):
    manager, employees, template = team
    for employee, due in zip(employees, [_in(3), _in(1), _in(-2), _in(2), _in(10)]):
        create_review(db_session, employee=employee, manager=manager, template=template, due_date=due)
    # waiting on the manager: not part of the self-evaluation sweep
    create_review(
        db_session,
        employee=employees[5],
        manager=manager,
        template=template,
        status=ReviewStatus.PENDING_MANAGER,
        due_date=_in(1),
    )

    result = services.dispatcher(db_session).run_deadline_sweep(services.now())

    assert result.reviews_checked == 5
    assert result.three_day_reminders == 1
    assert result.one_day_reminders == 1
    assert result.overdue_reminders == 1
    assert result.errors == 0

    notes = _notifications(db_session, NotificationType.REVIEW_DUE_SOON)
    assert {n.user_id for n in notes} == {employees[0].id, employees[1].id, employees[2].id}
    overdue = next(n for n in notes if n.user_id == employees[2].id)
    assert overdue.title == "Review Overdue"
    soon = next(n for n in notes if n.user_id == employees[1].id)
    assert soon.message == "Your Quarterly Review review is due in 1 day."


def test_deadline_sweep_dedups_within_a_day(db_session, services, clock, team):
    manager, employees, template = team
    create_review(db_session, employee=employees[0], manager=manager, template=template, due_date=_in(-1))
    dispatcher = services.dispatcher(db_session)

    assert dispatcher.run_deadline_sweep(services.now()).total_created == 1
    assert dispatcher.run_deadline_sweep(services.now()).total_created == 0

    clock.advance(hours=25)
    assert dispatcher.run_deadline_sweep(services.now()).overdue_reminders == 1
    assert len(_notifications(db_session, NotificationType.REVIEW_DUE_SOON)) == 2


def test_review_reminders_record_successful_sends(db_session, services, mailer, team):
    manager, employees, template = team
    own = create_review(db_session, employee=employees[0], manager=manager, template=template, due_date=_in(2))
    managers_turn = create_review(
        db_session,
        employee=employees[1],
        manager=manager,
        template=template,
        status=ReviewStatus.PENDING_MANAGER,
        due_date=_in(-1),
    )
    create_review(db_session, employee=employees[2], manager=manager, template=template, due_date=_in(9))

    dispatcher = services.dispatcher(db_session)
    result = dispatcher.send_review_reminders(services.now())

    assert result.reviews_checked == 3
    assert result.reminders_sent == 2
    assert sorted(m["to"][0] for m in mailer.sent) == sorted([employees[0].email, manager.email])
    manager_mail = next(m for m in mailer.sent if m["to"] == [manager.email])
    assert f"/reviews/{managers_turn.id}" in manager_mail["html"]

    db_session.expire_all()
    assert db_session.get(PerformanceReview, own.id).last_reminder_at == services.now()

    # spaced two days apart
    assert dispatcher.send_review_reminders(services.now()).reminders_sent == 0


def test_failed_reminder_is_retried_next_run(db_session, services, team):
    manager, employees, template = team
    review = create_review(db_session, employee=employees[0], manager=manager, template=template, due_date=_in(1))
    services.mailer = RecordingMailer(fail=True)

    result = services.dispatcher(db_session).send_review_reminders(services.now())

    assert result.reminders_sent == 0
    assert result.failures == 1
    db_session.expire_all()
    assert db_session.get(PerformanceReview, review.id).last_reminder_at is None


def test_broadcast_cycle_reminders(db_session, services, mailer, team):
    manager, employees, template = team
    cycle = create_cycle(db_session, template, name="H1 Reviews")
    create_review(db_session, employee=employees[0], manager=manager, template=template, cycle=cycle, due_date=_in(5))
    create_review(db_session, employee=employees[1], manager=manager, template=template, cycle=cycle, due_date=_in(5))
    create_review(
        db_session,
        employee=employees[2],
        manager=manager,
        template=template,
        cycle=cycle,
        status=ReviewStatus.PENDING_MANAGER,
        due_date=_in(5),
    )
    create_review(
        db_session,
        employee=employees[3],
        manager=manager,
        template=template,
        cycle=cycle,
        status=ReviewStatus.COMPLETED,
        completed_at=datetime(2025, 1, 9, 12, 0),
    )

    result = services.dispatcher(db_session).broadcast_cycle_reminders(cycle.id, services.now())

    assert result.employee_recipients == 2
    assert result.manager_recipients == 1
    assert result.emails_queued == 2
    assert sorted(mailer.sent[0]["to"]) == sorted([employees[0].email, employees[1].email])
    assert mailer.sent[1]["to"] == [manager.email]
    assert mailer.sent[0]["subject"] == "Reminder: Complete Your Performance Review - H1 Reviews"

    with pytest.raises(NotFound):
        services.dispatcher(db_session).broadcast_cycle_reminders(employees[0].id, services.now())


def test_single_reminder_goes_to_whoever_is_pending(db_session, services, team):
    manager, employees, template = team
    review = create_review(
        db_session,
        employee=employees[0],
        manager=manager,
        template=template,
        status=ReviewStatus.PENDING_MANAGER,
        due_date=_in(2),
    )
    done = create_review(
        db_session,
        employee=employees[1],
        manager=manager,
        template=template,
        status=ReviewStatus.COMPLETED,
        due_date=_in(2),
        completed_at=datetime(2025, 1, 9, 12, 0),
    )
    dispatcher = services.dispatcher(db_session)

    note = dispatcher.send_single_reminder(review.id, services.now())
    assert note.user_id == manager.id
    assert note.message == "Your Quarterly Review review is due in 2 days."

    with pytest.raises(InvalidState):
        dispatcher.send_single_reminder(done.id, services.now())

    today = create_review(
        db_session, employee=employees[2], manager=manager, template=template, due_date=_in(0)
    )
    note = dispatcher.send_single_reminder(today.id, services.now())
    assert note.user_id == employees[2].id
    assert note.message == "Your Quarterly Review review is due today."


def test_cleanup_drops_old_notifications(db_session, services, clock, team):
    _, employees, _ = team
    notifications = services.notifications()
    clock.advance(days=-40)
    notifications.create(employees[0].id, NotificationType.REVIEW_ASSIGNED, "Old", "old one")
    clock.advance(days=35)
    notifications.create(employees[0].id, NotificationType.REVIEW_ASSIGNED, "Recent", "recent one")
    clock.advance(days=5)

    assert notifications.cleanup_older_than(clock.now(), days=30) == 1
    db_session.expire_all()
    assert [n.title for n in db_session.query(Notification).all()] == ["Recent"]


def test_notification_inbox_api(db_session, client, services, team):
    _, employees, _ = team
    me, other = employees[0], employees[1]
    notifications = services.notifications()
    first = notifications.create(me.id, NotificationType.REVIEW_ASSIGNED, "First", "one", "/reviews/1")
    services.clock.advance(minutes=5)
    notifications.create(me.id, NotificationType.REVIEW_COMPLETED, "Second", "two")
    theirs = notifications.create(other.id, NotificationType.REVIEW_ASSIGNED, "Theirs", "three")

    r = client.get("/notifications", headers=headers(me))
    assert r.status_code == 200
    assert [n["title"] for n in r.json()] == ["Second", "First"]

    r = client.get("/notifications/unread-count", headers=headers(me))
    assert r.json() == {"unread": 2}

    r = client.post(f"/notifications/{first.id}/read", headers=headers(me))
    assert r.status_code == 200
    assert r.json()["is_read"] is True
    assert client.get("/notifications/unread-count", headers=headers(me)).json() == {"unread": 1}

    # someone else's notification looks missing
    r = client.post(f"/notifications/{theirs.id}/read", headers=headers(me))
    assert r.status_code == 404
    r = client.delete(f"/notifications/{theirs.id}", headers=headers(me))
    assert r.status_code == 404

    r = client.post("/notifications/read-all", headers=headers(me))
    assert r.json() == {"updated": 1}

    r = client.delete(f"/notifications/{first.id}", headers=headers(me))
    assert r.status_code == 204
    assert [n["title"] for n in client.get("/notifications", headers=headers(me)).json()] == ["Second"]


def test_inbox_requires_user(client):
    r = client.get("/notifications")
    assert r.status_code == 401
