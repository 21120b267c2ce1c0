"""Errors raised by the API client, the session and form validation."""

from typing import Any, Optional


class PlannerError(Exception):
    pass


class ApiError(PlannerError):
    """A remote call failed (network error or non-2xx response)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class AuthenticationRequired(ApiError):
    """Stored credentials are gone; the user has to log in again."""

    def __init__(self, message: str = "Session expired, please log in again"):
        super().__init__(message, status_code=401)


class ValidationError(PlannerError):
    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))


def server_message(payload: Any, fallback: str) -> str:
    """Pull the human-readable message out of an error body."""
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if isinstance(message, str) and message:
            return message
    return fallback
