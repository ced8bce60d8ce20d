"""Exception taxonomy shared by the core and adapters."""

from __future__ import annotations

from typing import Any, Optional


class RentwatchError(Exception):
    """Base exception for rentwatch."""

    def __init__(self, message: str, detail: Any = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(RentwatchError):
    """A listing write would break the mandatory-field invariant."""


class NotFoundError(RentwatchError):
    """An operation addressed an identifier that does not exist."""


class GatewayError(RentwatchError):
    """The messaging provider failed after all retry attempts."""

    def __init__(self, message: str, code: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(message, detail)
        self.code = code or "UNKNOWN_ERROR"

    def __str__(self) -> str:
        return f"{self.message} ({self.code})"


class ConfigurationError(RentwatchError):
    """A required credential or setting is missing at construction time."""
