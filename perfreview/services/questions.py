from perfreview.models.enums import ReviewRole
from perfreview.models.review_template import ReviewTemplate, TemplateQuestion


def is_visible(question: TemplateQuestion, role: ReviewRole) -> bool:
    # An empty role set means every participant sees the question
    roles = question.applicable_roles or frozenset()
    return not roles or ReviewRole(role) in roles


def visible_questions(template: ReviewTemplate, role: ReviewRole) -> list[TemplateQuestion]:
    return [q for q in template.questions if is_visible(q, role)]
