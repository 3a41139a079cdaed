from dataclasses import dataclass
from html import escape


@dataclass(frozen=True)
class Email:
    subject: str
    html: str


def review_assigned(employee_name: str, review_title: str) -> Email:
    return Email(
        subject=f"New Performance Review Assigned: {review_title}",
        html=(
            f"<p>Hi {escape(employee_name)},</p>"
            f"<p>A new performance review, \"{escape(review_title)}\", has been assigned to you. "
            "Please log in to complete your self-evaluation.</p>"
        ),
    )


def cycle_assigned(cycle_name: str, template_title: str) -> Email:
    """Grouped mail for a whole batch of recipients, so no personal greeting."""
    return Email(
        subject=f"New Performance Review Assigned: {template_title} - {cycle_name}",
        html=(
            "<p>Hi,</p>"
            f"<p>You have been assigned a new performance review as part of the {escape(cycle_name)} cycle. "
            "Please log in to complete your self-evaluation.</p>"
        ),
    )


def self_evaluation_submitted(employee_name: str, manager_name: str, review_title: str) -> Email:
    return Email(
        subject=f"Self-Evaluation Submitted by {employee_name} for {review_title}",
        html=(
            f"<p>Hi {escape(manager_name)},</p>"
            f"<p>{escape(employee_name)} has submitted their self-evaluation for the "
            f"\"{escape(review_title)}\" review. Please log in to complete the manager review.</p>"
        ),
    )


def review_completed(employee_name: str, manager_name: str, review_title: str) -> Email:
    return Email(
        subject=f"Performance Review Completed for {employee_name}",
        html=(
            f"<p>Hi {escape(employee_name)} and {escape(manager_name)},</p>"
            f"<p>The performance review \"{escape(review_title)}\" for {escape(employee_name)} "
            f"has been completed by {escape(manager_name)}.</p>"
        ),
    )


def cycle_reminder(cycle_name: str, deadline: str, manager_phase: bool) -> Email:
    if manager_phase:
        return Email(
            subject=f"Reminder: Complete Manager Reviews - {cycle_name}",
            html=(
                "<p>This is a friendly reminder to complete the manager reviews for the "
                f"{escape(cycle_name)} performance review cycle. The deadline is {escape(deadline)}.</p>"
            ),
        )
    return Email(
        subject=f"Reminder: Complete Your Performance Review - {cycle_name}",
        html=(
            "<p>This is a friendly reminder to complete your self-evaluation for the "
            f"{escape(cycle_name)} performance review cycle. The deadline is {escape(deadline)}.</p>"
        ),
    )


def review_reminder(
    recipient_name: str,
    review_title: str,
    deadline_text: str,
    review_url: str,
    manager_phase: bool,
) -> Email:
    action = (
        "Please complete the manager review as soon as possible."
        if manager_phase
        else "Please complete your self-evaluation as soon as possible."
    )
    return Email(
        subject=f"Reminder: Performance Review {deadline_text}",
        html=(
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #0891b2;">Performance Review Reminder</h2>'
            f"<p>Hi {escape(recipient_name)},</p>"
            "<p>This is a reminder about your pending performance review: "
            f"<strong>{escape(review_title)}</strong></p>"
            f"<p><strong>Status:</strong> {escape(deadline_text)}</p>"
            f"<p>{action}</p>"
            f'<p><a href="{escape(review_url)}">Complete Review</a></p>'
            '<p style="color: #64748b; font-size: 14px;">'
            "This is an automated reminder from the Performance Management Platform.</p>"
            "</div>"
        ),
    )
