"""API error hierarchy translated into JSON responses by the app factory."""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class ApiError(Exception):
    """Base error carrying an HTTP status and a user-facing message."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, errors: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class NotFound(ApiError):
    """Entity absent or not owned by the caller."""

    status_code = 404
    default_message = "Resource not found"


class ValidationFailure(ApiError):
    status_code = 400
    default_message = "Invalid request"

    @classmethod
    def for_fields(cls, errors: List[Dict[str, str]]) -> "ValidationFailure":
        message = errors[0]["message"] if len(errors) == 1 else "Invalid request"
        return cls(message, errors=errors)


class InvalidTransition(ValidationFailure):
    status_code = 409
    default_message = "Status transition not allowed"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Not authorized"


class UpstreamFailure(ApiError):
    """A call to GitHub failed; distinguished only by message."""

    status_code = 502
    default_message = "Upstream service error"

    def __init__(self, message: str | None = None, *, status: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.upstream_status = status


class RateLimited(UpstreamFailure):
    default_message = "GitHub rate limit exceeded. Try again later."
