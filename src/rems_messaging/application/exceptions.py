from __future__ import annotations


class AppError(Exception):
    """Base application error. Subclasses pin the HTTP status they surface as."""

    status_code: int = 500

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class UnauthorizedError(AppError):
    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ForbiddenError(AppError):
    status_code = 403


class ConflictError(AppError):
    status_code = 409


class ValidationError(AppError):
    status_code = 422
