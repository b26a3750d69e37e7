"""HTTP client for the Spendwise API.

The client keeps the bearer token in a :class:`TokenStore`, attaches it to
every request and forgets it as soon as the server answers 401 or 403, so
the caller knows it has to log in again.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, List

import requests

LOG = logging.getLogger(__name__)

DEFAULT_API_URL = os.environ.get("SPENDWISE_API_URL", "http://127.0.0.1:8000")
DEFAULT_TOKEN_PATH = Path.home() / ".spendwise" / "token"

# Suggested in forms; the server accepts any category.
CATEGORIES = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Bills & Utilities",
    "Healthcare",
    "Travel",
    "Education",
    "Other",
)


class ApiError(RuntimeError):
    """Raised when the API answers with a failure status."""

    def __init__(self, status_code: int | None, message: str, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details or []


class AuthenticationRequired(ApiError):
    """Raised on 401/403; the stored token has already been cleared."""


class TokenStore:
    """Keep the bearer token in memory and optionally on disk."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._token: str | None = None
        if self.path is not None and self.path.exists():
            self._token = self.path.read_text(encoding="utf-8").strip() or None

    @property
    def token(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(token, encoding="utf-8")
            self.path.chmod(0o600)

    def clear(self) -> None:
        self._token = None
        if self.path is not None:
            self.path.unlink(missing_ok=True)


class ExpenseClient:
    """Talk to the Spendwise REST API.

    Args:
      base_url: Root URL of the API.
      token_store: Where the bearer token lives; in memory when omitted.
      session: Object exposing ``request(method, url, **kwargs)`` in the
        :mod:`requests` style. Defaults to a :class:`requests.Session`.
      timeout: Seconds before giving up on a request, ``None`` to wait.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        token_store: TokenStore | None = None,
        session: Any | None = None,
        timeout: float | None = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store or TokenStore()
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, payload: Mapping[str, Any] | None = None) -> Any:
        headers = {"Content-Type": "application/json"}
        token = self.token_store.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        kwargs: dict[str, Any] = {"headers": headers}
        if payload is not None:
            kwargs["json"] = dict(payload)
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(None, f"Cannot reach {url}: {exc}") from exc

        if response.status_code in (401, 403):
            self.token_store.clear()
            body = _json_or_empty(response)
            raise AuthenticationRequired(response.status_code, body.get("error") or "Authentication required")
        if response.status_code >= 400:
            body = _json_or_empty(response)
            LOG.debug("%s %s failed with %s", method, path, response.status_code)
            raise ApiError(
                response.status_code,
                body.get("error") or "Something went wrong",
                details=body.get("details"),
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def register(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/register", {"email": email, "password": password})["user"]

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and persist the returned token; returns the user record."""
        body = self._request("POST", "/login", {"email": email, "password": password})
        self.token_store.save(body["token"])
        return body["user"]

    def logout(self) -> None:
        self.token_store.clear()

    def is_authenticated(self) -> bool:
        return bool(self.token_store.token)

    def list_expenses(self) -> List[dict[str, Any]]:
        return self._request("GET", "/expenses")

    def get_expense(self, expense_id: str) -> dict[str, Any]:
        return self._request("GET", f"/expenses/{expense_id}")

    def create_expense(
        self,
        amount: float | Decimal,
        category: str,
        on_date: date | str,
        description: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "amount": float(amount),
            "category": category,
            "date": _iso(on_date),
        }
        if description is not None:
            payload["description"] = description
        return self._request("POST", "/expenses", payload)["expense"]

    def update_expense(self, expense_id: str, **changes: Any) -> dict[str, Any]:
        """Send a partial update; only the keyword arguments given are changed."""
        payload = {}
        for key, value in changes.items():
            if key == "amount" and value is not None:
                value = float(value)
            elif key in {"date", "on_date"}:
                key, value = "date", _iso(value) if value is not None else None
            payload[key] = value
        return self._request("PUT", f"/expenses/{expense_id}", payload)

    def delete_expense(self, expense_id: str) -> None:
        self._request("DELETE", f"/expenses/{expense_id}")

    def analytics(self) -> dict[str, Any]:
        return self._request("GET", "/expenses/analytics")


def filter_expenses(
    expenses: Iterable[Mapping[str, Any]],
    *,
    category: str | None = None,
    search: str | None = None,
    on_date: date | str | None = None,
) -> List[Mapping[str, Any]]:
    """Narrow a list of expenses the way the dashboard filters do.

    ``search`` matches description or category, case-insensitively; empty
    filters are ignored.
    """

    needle = search.lower() if search else None
    wanted_date = _iso(on_date) if on_date else None
    selected = []
    for expense in expenses:
        if category and expense.get("category") != category:
            continue
        if needle:
            description = (expense.get("description") or "").lower()
            if needle not in description and needle not in str(expense.get("category", "")).lower():
                continue
        if wanted_date and expense.get("date") != wanted_date:
            continue
        selected.append(expense)
    return selected


def total_amount(expenses: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((Decimal(str(expense.get("amount", 0))) for expense in expenses), Decimal(0))


def _iso(value: date | str) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)


def _json_or_empty(response: Any) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


__all__ = [
    "ApiError",
    "AuthenticationRequired",
    "CATEGORIES",
    "ExpenseClient",
    "TokenStore",
    "filter_expenses",
    "total_amount",
]
