from typing import Any


class AppError(Exception):
    """
    Base for domain failures raised by the services layer.

    The HTTP layer renders these through a single exception handler, so the
    services never need to know about status codes beyond this mapping.
    """

    status_code = 400
    error_code = "BUSINESS_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.error_code, **self.details}


class ValidationFailed(AppError):
    status_code = 400
    error_code = "VALIDATION_FAILED"


class NotAuthorized(AppError):
    """Wrong actor for the review or the operation ("not your review")."""

    status_code = 403
    error_code = "NOT_AUTHORIZED"


class InvalidState(AppError):
    status_code = 409
    error_code = "INVALID_STATE"


class NotFound(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class InstantiationFailed(AppError):
    """A review batch failed to persist; earlier batches stay committed."""

    status_code = 500
    error_code = "INSTANTIATION_FAILED"

    def __init__(self, message: str, created_count: int, review_ids: list[str] | None = None):
        super().__init__(message, {"created_count": created_count})
        self.created_count = created_count
        self.review_ids = review_ids or []
