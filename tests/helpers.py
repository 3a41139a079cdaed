from datetime import date, datetime

from sqlalchemy.orm import Session

from perfreview.models.enums import Frequency, ReviewRole, ReviewStatus, UserRole
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.review_template import ReviewTemplate, TemplateQuestion, TemplateSection
from perfreview.models.user import User
from perfreview.services.mailer import Mailer, split_recipients
from perfreview.services.recurrence import next_run


class RecordingMailer(Mailer):
    """Keeps every mail in memory; ``fail=True`` makes every send report failure."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(self, to, subject, html) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": split_recipients(to), "subject": subject, "html": html})
        return True


def headers(user: User) -> dict[str, str]:
    return {"X-User-Email": user.email}


def create_user(
    db: Session,
    email: str,
    name: str = "User",
    *,
    role: UserRole = UserRole.EMPLOYEE,
    department: str | None = None,
    manager: User | None = None,
    review_eligible: bool = True,
    is_active: bool = True,
) -> User:
    u = User(
        email=email,
        name=name,
        role=role.value,
        department=department,
        manager_id=manager.id if manager else None,
        review_eligible=review_eligible,
        is_active=is_active,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def create_hr(db: Session, email: str = "hr@local.test") -> User:
    return create_user(db, email, "HR Admin", role=UserRole.HR, review_eligible=False)


def create_manager(db: Session, email: str = "manager@local.test", name: str = "Maya Manager", **kwargs) -> User:
    # Managers stay out of cycle populations unless a test says otherwise
    kwargs.setdefault("review_eligible", False)
    return create_user(db, email, name, role=UserRole.MANAGER, **kwargs)


def create_template(
    db: Session,
    title: str = "Quarterly Review",
    questions: list[tuple[str, set[ReviewRole]]] | None = None,
) -> ReviewTemplate:
    """
    Default layout: one shared question, one employee-only, one manager-only.
    """
    if questions is None:
        questions = [
            ("How did the quarter go?", set()),
            ("What are you most proud of?", {ReviewRole.EMPLOYEE}),
            ("How would you rate their ownership?", {ReviewRole.MANAGER}),
        ]

    t = ReviewTemplate(title=title)
    section = TemplateSection(title="Performance", position=1)
    for pos, (text, roles) in enumerate(questions, start=1):
        section.questions.append(TemplateQuestion(text=text, position=pos, applicable_roles=frozenset(roles)))
    t.sections.append(section)
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def question_by_text(template: ReviewTemplate, prefix: str) -> TemplateQuestion:
    return next(q for q in template.questions if q.text.startswith(prefix))


def create_cycle(
    db: Session,
    template: ReviewTemplate,
    *,
    name: str = "Q1 Reviews",
    frequency: Frequency = Frequency.QUARTERLY,
    start_date: date = date(2025, 1, 10),
    due_date: date | None = date(2025, 1, 24),
    include_all_users: bool = True,
    departments: list[str] | None = None,
    next_run_date: date | None = None,
    last_run_date: datetime | None = None,
    is_active: bool = True,
) -> ReviewCycle:
    c = ReviewCycle(
        name=name,
        frequency=frequency.value,
        start_date=start_date,
        due_date=due_date,
        include_all_users=include_all_users,
        departments=departments,
        next_run_date=next_run_date or next_run(start_date, frequency),
        last_run_date=last_run_date,
        is_active=is_active,
        template_id=template.id,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def create_review(
    db: Session,
    *,
    employee: User,
    manager: User,
    template: ReviewTemplate,
    cycle: ReviewCycle | None = None,
    status: ReviewStatus = ReviewStatus.PENDING_EMPLOYEE,
    due_date: date | None = None,
    last_reminder_at: datetime | None = None,
    completed_at: datetime | None = None,
) -> PerformanceReview:
    r = PerformanceReview(
        employee_id=employee.id,
        manager_id=manager.id,
        template_id=template.id,
        cycle_id=cycle.id if cycle else None,
        status=status.value,
        due_date=due_date,
        last_reminder_at=last_reminder_at,
        completed_at=completed_at,
    )
    db.add(r)
    db.commit()
    db.refresh(r)
    return r
