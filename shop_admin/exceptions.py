"""
Typed failures raised by the service layer.

Each class carries the HTTP status it maps to, so the exception handlers
registered in ``main.py`` can render any of them without a lookup table.
Repository failures are translated into this taxonomy by
``translate_repository_error``; raw SQLAlchemy errors never reach the
router.
"""
from fastapi import status

from shop_admin.repositories.errors import (
    ConstraintViolation,
    DuplicateKeyError,
    RecordNotFound,
    RepositoryError,
)


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, errors: list[tuple[str, str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors: list[tuple[str, str]] = list(errors or [])

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "errors": [{"field": field, "message": msg} for field, msg in self.errors],
        }


class ValidationError(ServiceError):
    """Malformed or inconsistent input; carries (field, message) pairs."""

    status_code = status.HTTP_400_BAD_REQUEST

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [(field, message)])


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """Uniqueness violation; ``field`` names the offending column."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message, [(field, message)])
        self.field = field


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class InternalServiceError(ServiceError):
    def __init__(self, message: str = "Internal server error.") -> None:
        super().__init__(message)


def translate_repository_error(exc: RepositoryError) -> ServiceError:
    """Map a repository failure onto the service error taxonomy."""
    if isinstance(exc, DuplicateKeyError):
        message = f"{exc.field.capitalize()} already exists."
        return ConflictError(message, exc.field)
    if isinstance(exc, ConstraintViolation):
        return ValidationError.for_field(exc.field, exc.message)
    if isinstance(exc, RecordNotFound):
        return NotFoundError(str(exc))
    return InternalServiceError()
