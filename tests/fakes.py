"""Test doubles for the HTTP session and the clock."""
from __future__ import annotations

from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from requests.structures import CaseInsensitiveDict

from exchange_relay.config import Settings

NOW = 1_700_000_000.0


class DummyResponse:
    def __init__(self, status_code: int = 200, text: str = "{}", headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {})


class DummySession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClock:
    def __init__(self, now: float = NOW, factor: float = 1.0) -> None:
        self.now = now
        self.factor = factor
        self.sleeps: list[float] = []
        self.uniform_calls: list[tuple[float, float]] = []

    def time(self) -> float:
        return self.now

    def monotonic(self) -> float:
        return self.now

    def uniform(self, low: float, high: float) -> float:
        self.uniform_calls.append((low, high))
        return self.factor

    def sleep(self, seconds: float, cancel: Any = None) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return not (cancel is not None and cancel.cancelled)


def make_settings(**values: Any) -> Settings:
    return Settings.model_validate(values)


def ec_private_key_pem(curve: ec.EllipticCurve | None = None) -> tuple[str, ec.EllipticCurvePrivateKey]:
    key = ec.generate_private_key(curve or ec.SECP256R1())
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return pem, key
