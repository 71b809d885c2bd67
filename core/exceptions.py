"""
Application exceptions.

Services raise these; the handlers registered in app.py render them into the
standard response envelope ``{status, message, errors?}``.
"""
from typing import Dict, List, Optional

from fastapi import status


class ComplaintsAPIError(Exception):
    """Base exception for all complaint API errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[Dict[str, List[str]]] = None
    ):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(ComplaintsAPIError):
    """Malformed, missing or duplicate input."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation errors"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(errors={field: [message]})


class ForbiddenError(ComplaintsAPIError):
    """Role or ownership policy refused the operation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to access this resource"


class NotFoundError(ComplaintsAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(ComplaintsAPIError):
    """Delete blocked because other rows still reference the target."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Resource is still referenced"


class UnauthorizedError(ComplaintsAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"
