"""Utility helpers."""

from .logging import RequestLogger, configure_logging, get_request_id, redact_url, request_scope, set_request_id

__all__ = ["RequestLogger", "configure_logging", "get_request_id", "redact_url", "request_scope", "set_request_id"]
