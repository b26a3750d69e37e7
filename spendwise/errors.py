"""Error taxonomy shared by the authenticator, repository and router."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class SpendwiseError(RuntimeError):
    """Base class for failures that map onto an HTTP response."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class InvalidInput(SpendwiseError):
    """Raised when a payload is missing fields or carries the wrong types."""

    status_code = 400
    message = "Invalid input"

    def __init__(self, message: str | None = None, details: Sequence[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.details = list(details or [])

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["details"] = self.details
        return payload


class DuplicateUser(SpendwiseError):
    status_code = 409
    message = "User already exists"


class InvalidCredentials(SpendwiseError):
    """Raised for an unknown email and for a wrong password alike."""

    status_code = 401
    message = "Invalid credentials"


class MissingToken(SpendwiseError):
    status_code = 401
    message = "Access token required"


class InvalidToken(SpendwiseError):
    status_code = 403
    message = "Invalid or expired token"


class NotFound(SpendwiseError):
    """Raised when an expense does not exist or belongs to someone else."""

    status_code = 404
    message = "Expense not found"


class RouteNotFound(SpendwiseError):
    status_code = 404
    message = "Route not found"


class InternalError(SpendwiseError):
    status_code = 500
    message = "Internal server error"


__all__ = [
    "DuplicateUser",
    "InternalError",
    "InvalidCredentials",
    "InvalidInput",
    "InvalidToken",
    "MissingToken",
    "NotFound",
    "RouteNotFound",
    "SpendwiseError",
]
