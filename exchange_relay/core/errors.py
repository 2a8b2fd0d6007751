"""Exception types and request outcomes shared by the exchange clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ExchangeError(RuntimeError):
    """Base exception for failures raised inside the request pipeline."""


class CredentialError(ExchangeError):
    """Raised when a signed call is attempted without complete credentials."""


class SigningError(ExchangeError):
    """Raised when a request cannot be signed (bad key, malformed DER)."""


@dataclass(frozen=True)
class Success:
    body: Any = field(default_factory=dict)

    def to_envelope(self) -> dict[str, Any]:
        return {"success": True, "data": self.body}


@dataclass(frozen=True)
class ApiError:
    message: str
    http_code: int

    def to_envelope(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.http_code}


@dataclass(frozen=True)
class TransportError:
    message: str

    def to_envelope(self) -> dict[str, Any]:
        return {"success": False, "error": f"Connection error: {self.message}"}


@dataclass(frozen=True)
class InvalidResponse:
    raw: str

    def to_envelope(self) -> dict[str, Any]:
        return {"success": False, "error": f"Invalid response: {self.raw}"}


@dataclass(frozen=True)
class SigningFailure:
    message: str

    def to_envelope(self) -> dict[str, Any]:
        return {"success": False, "error": f"Signing failed: {self.message}"}


@dataclass(frozen=True)
class Cancelled:
    reason: str = "cancelled"

    def to_envelope(self) -> dict[str, Any]:
        return {"success": False, "error": f"Request cancelled: {self.reason}"}


ExchangeResult = Success | ApiError | TransportError | InvalidResponse | SigningFailure | Cancelled


__all__ = [
    "ApiError",
    "Cancelled",
    "CredentialError",
    "ExchangeError",
    "ExchangeResult",
    "InvalidResponse",
    "SigningError",
    "SigningFailure",
    "Success",
    "TransportError",
]
