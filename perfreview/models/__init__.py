from perfreview.models.audit_event import AuditEvent
from perfreview.models.notification import Notification
from perfreview.models.performance_review import PerformanceReview
from perfreview.models.review_cycle import ReviewCycle
from perfreview.models.review_response import ReviewResponse
from perfreview.models.review_template import ReviewTemplate, TemplateQuestion, TemplateSection
from perfreview.models.user import User

__all__ = [ "AuditEvent", "Notification", "PerformanceReview",
           "ReviewCycle", "ReviewResponse", "ReviewTemplate",
           "TemplateQuestion", "TemplateSection", "User" ]
