from enum import Enum


class UserRole(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    HR = "HR"


class ReviewRole(str, Enum):
    """The part a user plays on one particular review."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"


class ReviewStatus(str, Enum):
    PENDING_EMPLOYEE = "PENDING_EMPLOYEE"
    PENDING_MANAGER = "PENDING_MANAGER"
    COMPLETED = "COMPLETED"


PENDING_STATUSES = (ReviewStatus.PENDING_EMPLOYEE.value, ReviewStatus.PENDING_MANAGER.value)


class Frequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    ANNUAL = "ANNUAL"


class NotificationType(str, Enum):
    REVIEW_ASSIGNED = "REVIEW_ASSIGNED"
    REVIEW_DUE_SOON = "REVIEW_DUE_SOON"
    REVIEW_SUBMITTED = "REVIEW_SUBMITTED"
    REVIEW_COMPLETED = "REVIEW_COMPLETED"
    CYCLE_CREATED = "CYCLE_CREATED"


def sql_in(enum_cls) -> str:
    """Render enum values for a CHECK constraint: 'A','B'"""
    return ",".join(f"'{m.value}'" for m in enum_cls)
