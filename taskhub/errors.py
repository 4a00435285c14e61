"""Domain errors raised by services and mapped to HTTP responses in main."""
from __future__ import annotations

from typing import Iterable


class TaskHubError(Exception):
    """Base error; ``status_code`` is the HTTP status it maps to."""

    status_code = 500

    def __init__(self, detail: str, *, fields: Iterable[str] | None = None):
        super().__init__(detail)
        self.detail = detail
        self.fields = list(fields or [])

    def to_dict(self) -> dict:
        body: dict = {"detail": self.detail}
        if self.fields:
            body["fields"] = self.fields
        return body


class ValidationError(TaskHubError):
    """Malformed or missing input."""

    status_code = 400


class ForbiddenError(TaskHubError):
    status_code = 403


class NotFoundError(TaskHubError):
    status_code = 404


class ConflictError(TaskHubError):
    """A state invariant would be violated."""

    status_code = 409


class LockedError(ConflictError):
    """The activity no longer accepts submissions."""

    status_code = 403

    def __init__(self, detail: str = "Activity is locked and no longer accepts submissions"):
        super().__init__(detail)
