"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    code = "APP_ERROR"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        """Additional fields rendered into the error response."""
        return {}


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ValidationException(AppException):
    """Validation error exception."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class SlotConflictException(AppException):
    """The requested slot is already held by an active appointment.

    Carries the blocking appointment so callers can present alternatives.
    ``suggestions`` is filled in by callers that compute alternatives.
    """

    code = "SLOT_CONFLICT"

    def __init__(
        self,
        conflict: Any = None,
        message: str = "This slot is already booked. Please choose another slot.",
    ):
        """Initialize with 409 status code and the conflicting appointment."""
        super().__init__(message, status_code=409)
        self.conflict = conflict
        self.suggestions: Any = None

    def extra(self) -> dict[str, Any]:
        """Render the conflicting appointment and any suggestions."""
        return {
            "conflict": _dump(self.conflict),
            "suggestions": _dump(self.suggestions),
        }


class IneligibleTransitionException(AppException):
    """Requested transition is not allowed for the appointment's state."""

    code = "INELIGIBLE_TRANSITION"

    def __init__(self, message: str = "Transition not allowed"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class StoreException(AppException):
    """Underlying persistence failure."""

    code = "STORE_ERROR"

    def __init__(self, message: str = "Appointment store unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


def _dump(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", by_alias=True)
    return value
