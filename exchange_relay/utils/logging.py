"""Logging setup and the per-request summary logger."""
from __future__ import annotations

import json
import logging
import re
import secrets
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("exchange_relay_request_id", default=None)
_SCOPED_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("exchange_relay_scoped_request_id", default=None)
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{8,64}$")
_SIGNATURE_PATTERN = re.compile(r"(signature=)[0-9a-fA-F]+")


def configure_logging(verbose: bool = False, log_file: str | Path | None = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=handlers,
        force=True,
    )


def get_request_id() -> str:
    """Return the caller-supplied id, else the id of the active request scope.

    Outside any scope a fresh id is returned on every call.
    """

    return _REQUEST_ID.get() or _SCOPED_REQUEST_ID.get() or secrets.token_hex(8)


@contextmanager
def request_scope() -> Iterator[str]:
    """Bind a fresh request id for the duration of one exchange call."""

    token = _SCOPED_REQUEST_ID.set(secrets.token_hex(8))
    try:
        yield get_request_id()
    finally:
        _SCOPED_REQUEST_ID.reset(token)


def set_request_id(value: Optional[str]) -> None:
    # Upstream ids that do not look like ids are ignored.
    if value and _REQUEST_ID_PATTERN.match(value):
        _REQUEST_ID.set(value)


def redact_url(url: str) -> str:
    return _SIGNATURE_PATTERN.sub(r"\1***", url)


@dataclass
class RequestLogger:
    """Writes one JSON line per completed exchange request.

    Active only when ``debug`` is on or a ``log_file`` is configured.
    """

    debug: bool = False
    log_file: Optional[Path] = None
    environment: Optional[str] = None
    logger_name: str = "exchange_relay.requests"
    _logger: logging.Logger = field(init=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(self.logger_name)
        self._logger.setLevel(logging.INFO)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
            target = str(self.log_file.resolve())
            attached = any(
                isinstance(handler, logging.FileHandler) and handler.baseFilename == target
                for handler in self._logger.handlers
            )
            if not attached:
                self.log_file.parent.mkdir(parents=True, exist_ok=True)
                handler = logging.FileHandler(self.log_file)
                handler.setFormatter(logging.Formatter("%(message)s"))
                self._logger.addHandler(handler)

    @property
    def enabled(self) -> bool:
        return self.debug or self.log_file is not None

    def log_request(
        self,
        *,
        method: str,
        url: str,
        status: int,
        attempt: int,
        duration_ms: int,
        rate: Dict[str, Any],
        error: Optional[str],
        request_id: Optional[str] = None,
    ) -> None:
        if not self.enabled:
            return
        entry = {
            "method": method,
            "url": redact_url(url),
            "status": status,
            "attempt": attempt,
            "duration_ms": duration_ms,
            "rate": rate,
            "error": error,
            "request_id": request_id,
            "env": self.environment,
            "level": "error" if error else "info",
            "ts": datetime.now(UTC).isoformat(),
        }
        self._logger.info(json.dumps(entry, ensure_ascii=False, default=str))


__all__ = [
    "RequestLogger",
    "configure_logging",
    "get_request_id",
    "redact_url",
    "request_scope",
    "set_request_id",
]
