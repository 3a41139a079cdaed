"""initial review schema

Revision ID: 4f1c2a9d7e10
Revises:
Create Date: 2026-10-18 09:12:40.118203
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "4f1c2a9d7e10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("manager_id", sa.Uuid(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("review_eligible", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("role IN ('EMPLOYEE','MANAGER','HR')", name="ck_users_role"),
        sa.ForeignKeyConstraint(["manager_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_department", "users", ["department"])
    op.create_index("ix_users_manager_id", "users", ["manager_id"])

    op.create_table(
        "review_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "template_sections",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["review_templates.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_template_sections_template_id", "template_sections", ["template_id"])

    op.create_table(
        "template_questions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("section_id", sa.Uuid(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("applicable_roles", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["section_id"], ["template_sections.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_template_questions_section_id", "template_questions", ["section_id"])

    op.create_table(
        "review_cycles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("last_run_date", sa.DateTime(), nullable=True),
        sa.Column("next_run_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("include_all_users", sa.Boolean(), nullable=False),
        sa.Column("departments", sa.JSON(), nullable=True),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("created_by_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "frequency IN ('MONTHLY','QUARTERLY','SEMI_ANNUAL','ANNUAL')",
            name="ck_review_cycles_frequency",
        ),
        sa.ForeignKeyConstraint(["template_id"], ["review_templates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_review_cycles_next_run_date", "review_cycles", ["next_run_date"])

    op.create_table(
        "performance_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("manager_id", sa.Uuid(), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("cycle_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("overall_score", sa.Float(), nullable=True),
        sa.Column("is_draft", sa.Boolean(), nullable=False),
        sa.Column("last_reminder_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING_EMPLOYEE','PENDING_MANAGER','COMPLETED')",
            name="ck_performance_reviews_status",
        ),
        sa.CheckConstraint(
            "overall_score IS NULL OR (overall_score >= 0 AND overall_score <= 4)",
            name="ck_performance_reviews_score",
        ),
        sa.CheckConstraint(
            "(status <> 'COMPLETED') OR (completed_at IS NOT NULL)",
            name="ck_review_ts_completed",
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["manager_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["template_id"], ["review_templates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["cycle_id"], ["review_cycles.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "cycle_id", name="uq_review_employee_cycle"),
    )
    op.create_index("ix_performance_reviews_employee_id", "performance_reviews", ["employee_id"])
    op.create_index("ix_performance_reviews_manager_id", "performance_reviews", ["manager_id"])
    op.create_index("ix_performance_reviews_cycle_id", "performance_reviews", ["cycle_id"])

    op.create_table(
        "review_responses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("review_id", sa.Uuid(), nullable=False),
        sa.Column("question_id", sa.Uuid(), nullable=False),
        sa.Column("self_rating", sa.Integer(), nullable=True),
        sa.Column("self_comment", sa.Text(), nullable=True),
        sa.Column("manager_rating", sa.Integer(), nullable=True),
        sa.Column("manager_comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("self_rating IS NULL OR (self_rating BETWEEN 1 AND 4)", name="ck_response_self_rating"),
        sa.CheckConstraint(
            "manager_rating IS NULL OR (manager_rating BETWEEN 1 AND 4)", name="ck_response_manager_rating"
        ),
        sa.ForeignKeyConstraint(["review_id"], ["performance_reviews.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_id"], ["template_questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("review_id", "question_id", name="uq_response_review_question"),
    )
    op.create_index("ix_review_responses_review_id", "review_responses", ["review_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "type IN ('REVIEW_ASSIGNED','REVIEW_DUE_SOON','REVIEW_SUBMITTED','REVIEW_COMPLETED','CYCLE_CREATED')",
            name="ck_notifications_type",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_user_type_link", "notifications", ["user_id", "type", "link"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor_user_id", sa.Uuid(), nullable=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("event_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_index("ix_notifications_user_type_link", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_review_responses_review_id", table_name="review_responses")
    op.drop_table("review_responses")
    op.drop_index("ix_performance_reviews_cycle_id", table_name="performance_reviews")
    op.drop_index("ix_performance_reviews_manager_id", table_name="performance_reviews")
    op.drop_index("ix_performance_reviews_employee_id", table_name="performance_reviews")
    op.drop_table("performance_reviews")
    op.drop_index("ix_review_cycles_next_run_date", table_name="review_cycles")
    op.drop_table("review_cycles")
    op.drop_index("ix_template_questions_section_id", table_name="template_questions")
    op.drop_table("template_questions")
    op.drop_index("ix_template_sections_template_id", table_name="template_sections")
    op.drop_table("template_sections")
    op.drop_table("review_templates")
    op.drop_index("ix_users_manager_id", table_name="users")
    op.drop_index("ix_users_department", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
