"""
Error taxonomy raised by the scheduling and directory services.

The services are the only place these are raised; the HTTP layer renders
them through a single exception handler registered in ``main.py`` and never
reinterprets them.
"""

from typing import Dict, Optional

from fastapi import status


class MedScheduleError(Exception):
    """Base class for classified service failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal Server Error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": self.error, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class UnauthenticatedError(MedScheduleError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthenticated"
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class ForbiddenError(MedScheduleError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"

    def __init__(self, message: str = "Not enough permissions"):
        super().__init__(message)


class ValidationError(MedScheduleError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation Error"


class NotFoundError(MedScheduleError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"


class ConflictError(MedScheduleError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class InternalError(MedScheduleError):
    """Store or notifier failure. The message is never shown to clients."""

    def to_dict(self) -> dict:
        return {"error": self.error, "message": "An unexpected error occurred"}
