# posledger/errors.py
from typing import Any, Optional


class PosError(Exception):
    """Base class for every error the API turns into a ``{message, detail}`` body."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(PosError):
    status_code = 400


class NotFoundError(PosError):
    status_code = 404


class InsufficientStockError(PosError):
    status_code = 400


class DuplicateSaleError(PosError):
    status_code = 400


class ConflictError(PosError):
    """Unique name / email already taken."""

    status_code = 400


class UnauthenticatedError(PosError):
    status_code = 401


class ForbiddenError(PosError):
    status_code = 403


class UnexpectedError(PosError):
    status_code = 500


class StorageTimeoutError(UnexpectedError):
    pass
