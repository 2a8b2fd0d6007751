"""Retrying request executor shared by the exchange clients."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping

import requests

from exchange_relay.utils.logging import RequestLogger, get_request_id

from .auth import RequestIntent, Signer
from .clock import CancelToken, Clock
from .errors import (
    ApiError,
    Cancelled,
    ExchangeResult,
    InvalidResponse,
    SigningError,
    SigningFailure,
    Success,
    TransportError,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
MAX_RETRIES = 2
RETRY_DELAY_MS = 200
MAX_BACKOFF_MS = 2000


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = MAX_RETRIES
    retry_delay_ms: int = RETRY_DELAY_MS
    max_backoff_ms: int = MAX_BACKOFF_MS
    jitter_low: float = 0.5
    jitter_high: float = 1.5

    def should_retry(self, status_code: int, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        return status_code == 429 or 500 <= status_code < 600

    def base_delay_ms(self, attempt: int, retry_after_ms: int | None = None) -> int:
        base = retry_after_ms if retry_after_ms is not None else self.retry_delay_ms * (2**attempt)
        return min(base, self.max_backoff_ms)

    def backoff_ms(self, attempt: int, retry_after_ms: int | None, clock: Clock) -> float:
        return self.base_delay_ms(attempt, retry_after_ms) * clock.uniform(self.jitter_low, self.jitter_high)


@dataclass(frozen=True)
class RateLimitSnapshot:
    weight: str | None = None
    order_count: str | None = None
    limit: str | None = None
    remaining: str | None = None
    reset: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], mapping: Mapping[str, str]) -> "RateLimitSnapshot":
        """``mapping`` maps snapshot field names to response header names."""

        return cls(**{name: headers.get(header) for name, header in mapping.items()})

    def as_dict(self) -> dict[str, str]:
        return {key: value for key, value in vars(self).items() if value is not None}


def parse_retry_after_ms(value: str | None, now: float) -> int | None:
    """Return the ``Retry-After`` delay in milliseconds, or None for no override.

    ``now`` is the current epoch time in seconds, used for HTTP-date values.
    """

    if not value:
        return None
    value = value.strip()
    try:
        delay_ms = int(float(value) * 1000)
    except (ValueError, OverflowError):
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None
        if parsed is None:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        delay_ms = int((parsed.timestamp() - now) * 1000)
    return delay_ms if delay_ms > 0 else None


def extract_error_message(decoded: Any, status_code: int) -> str:
    if isinstance(decoded, dict):
        for key in ("message", "error"):
            if isinstance(decoded.get(key), str):
                return decoded[key]
        errors = decoded.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            if isinstance(errors[0].get("message"), str):
                return errors[0]["message"]
        if isinstance(decoded.get("msg"), str):
            return decoded["msg"]
    return f"HTTP {status_code}"


def classify_response(status_code: int, text: str) -> ExchangeResult:
    """Map a final (non-retried) HTTP response to an :data:`ExchangeResult`."""

    if status_code >= 400:
        try:
            decoded = json.loads(text) if text else None
        except ValueError:
            decoded = None
        return ApiError(extract_error_message(decoded, status_code), status_code)

    if text == "":
        return Success({})
    try:
        decoded = json.loads(text)
    except ValueError:
        return InvalidResponse(text)
    if decoded is None:
        return InvalidResponse(text)
    return Success(decoded)


class RequestExecutor:
    """Signs, sends and retries one logical request at a time.

    Instances hold only read-only configuration, so one executor may serve
    concurrent callers; every attempt counter lives on the caller's stack.
    """

    def __init__(
        self,
        signer: Signer,
        session: requests.Session | None = None,
        *,
        policy: RetryPolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        ca_bundle: str | None = None,
        clock: Clock | None = None,
        request_logger: RequestLogger | None = None,
        rate_limit_headers: Mapping[str, str] | None = None,
    ) -> None:
        self.signer = signer
        self.session = session or requests.Session()
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.verify: bool | str = ca_bundle if verify_ssl and ca_bundle else verify_ssl
        self.clock = clock or Clock()
        self.request_logger = request_logger
        self.rate_limit_headers = dict(rate_limit_headers or {})

    def execute(
        self,
        intent: RequestIntent,
        credentials: Any,
        cancel: CancelToken | None = None,
    ) -> ExchangeResult:
        start = self.clock.monotonic()
        attempt = 0
        while True:
            if cancel is not None and cancel.cancelled:
                return Cancelled(cancel.reason)

            try:
                request = self.signer.sign(intent, credentials)
            except SigningError as exc:
                LOGGER.error("Signing failed for %s %s: %s", intent.method, intent.endpoint, exc)
                self._log(intent.method, intent.endpoint, 0, attempt, start, {}, str(exc))
                return SigningFailure(str(exc))

            timeout = self.timeout
            if cancel is not None:
                remaining = cancel.remaining()
                if remaining is not None:
                    timeout = min(timeout, max(remaining, 0.001))

            try:
                response = self.session.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    data=request.body,
                    timeout=timeout,
                    verify=self.verify,
                )
            except requests.RequestException as exc:
                if cancel is not None and cancel.cancelled:
                    return Cancelled(cancel.reason)
                LOGGER.error("Transport failure for %s %s: %s", request.method, request.url, exc)
                self._log(request.method, request.url, 0, attempt, start, {}, str(exc))
                return TransportError(str(exc) or exc.__class__.__name__)

            if cancel is not None and cancel.cancelled:
                return Cancelled(cancel.reason)

            status = response.status_code
            if self.policy.should_retry(status, attempt):
                retry_after_ms = parse_retry_after_ms(response.headers.get("Retry-After"), self.clock.time())
                delay_ms = self.policy.backoff_ms(attempt, retry_after_ms, self.clock)
                LOGGER.warning(
                    "%s %s returned %s, retrying in %.0fms (attempt %d/%d)",
                    request.method,
                    intent.endpoint,
                    status,
                    delay_ms,
                    attempt + 1,
                    self.policy.max_retries,
                )
                if not self.clock.sleep(delay_ms / 1000, cancel):
                    return Cancelled(cancel.reason if cancel is not None else "cancelled")
                attempt += 1
                continue

            result = classify_response(status, response.text)
            error = None if isinstance(result, Success) else result.to_envelope()["error"]
            self._log(request.method, request.url, status, attempt, start, response.headers, error)
            return result

    def _log(
        self,
        method: str,
        url: str,
        status: int,
        attempt: int,
        start: float,
        headers: Mapping[str, str],
        error: str | None,
    ) -> None:
        if self.request_logger is None or not self.request_logger.enabled:
            return
        snapshot = RateLimitSnapshot.from_headers(headers, self.rate_limit_headers)
        self.request_logger.log_request(
            method=method,
            url=url,
            status=status,
            attempt=attempt,
            duration_ms=int((self.clock.monotonic() - start) * 1000),
            rate=snapshot.as_dict(),
            error=error,
            request_id=get_request_id(),
        )


__all__ = [
    "DEFAULT_TIMEOUT",
    "MAX_BACKOFF_MS",
    "MAX_RETRIES",
    "RETRY_DELAY_MS",
    "RateLimitSnapshot",
    "RequestExecutor",
    "RetryPolicy",
    "classify_response",
    "extract_error_message",
    "parse_retry_after_ms",
]
