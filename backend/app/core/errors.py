"""Service-level failures and the HTTP status each one maps to.

Routes and services raise these; ``app.main`` renders them into the
``{"status": false, "error": ...}`` envelope the admin client expects.
"""

from collections.abc import Iterable, Mapping
from typing import Any

_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def field_errors_from(errors: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Flatten pydantic error dicts into one message per field."""
    field_errors: dict[str, str] = {}
    for error in errors:
        parts = [
            str(part)
            for part in error.get("loc") or ()
            if part not in _REQUEST_LOCATIONS
        ]
        field = parts[0] if parts else "__all__"
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        field_errors.setdefault(field, message)
    return field_errors


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(ServiceError):
    status_code = 400

    def __init__(
        self, message: str, field_errors: dict[str, str] | None = None
    ) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}


class MissingRequiredInput(ValidationFailed):
    pass


class Forbidden(ServiceError):
    status_code = 403


class InvalidTransition(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class ConstraintViolation(ServiceError):
    status_code = 409


class ReviewConflict(ServiceError):
    """Another decision was committed after the caller read the review state."""

    status_code = 409


class PersistenceError(ServiceError):
    status_code = 500


class UploadError(ServiceError):
    status_code = 500
