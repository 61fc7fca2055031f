"""Failures raised by repositories; the service layer translates them."""


class RepositoryError(Exception):
    """Any persistence failure not classified below."""


class RecordNotFound(RepositoryError):
    pass


class DuplicateKeyError(RepositoryError):
    def __init__(self, field: str) -> None:
        super().__init__(f"duplicate value for {field}")
        self.field = field


class ConstraintViolation(RepositoryError):
    """A schema or field constraint rejected the write."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message
