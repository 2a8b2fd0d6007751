"""REST clients for the supported exchanges."""

from __future__ import annotations

import abc
import logging
from typing import Any

import requests

from exchange_relay.config import Settings, load_settings
from exchange_relay.utils.logging import RequestLogger, request_scope

from .auth import (
    BearerJwtSigner,
    Credentials,
    HmacCredentials,
    KeyPairCredentials,
    QueryHmacSigner,
    RequestIntent,
    Signer,
    normalize_pem,
)
from .clock import CancelToken, Clock
from .errors import ExchangeError
from .executor import RequestExecutor, RetryPolicy

LOGGER = logging.getLogger(__name__)

MISSING_CREDENTIALS = "API key and secret key are required"


class ExchangeClient(abc.ABC):
    """Uniform ``get/post/delete`` facade over a signer and the executor.

    Every call returns an envelope: ``{"success": True, "data": ...}`` or
    ``{"success": False, "error": ..., "code"?: ...}``. Nothing raises.
    """

    name = "exchange"
    RATE_LIMIT_HEADERS: dict[str, str] = {}

    def __init__(
        self,
        credentials: Credentials,
        signer: Signer,
        *,
        settings: Settings,
        session: requests.Session | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
        verify_ssl: bool = True,
        ca_bundle: str | None = None,
    ) -> None:
        self.credentials = credentials
        self.signer = signer
        self.base_url = signer.base_url
        self.executor = RequestExecutor(
            signer,
            session,
            policy=policy,
            timeout=settings.request_timeout,
            verify_ssl=verify_ssl,
            ca_bundle=Settings.usable_ca_bundle(ca_bundle),
            clock=clock,
            request_logger=RequestLogger(
                debug=settings.app_debug,
                log_file=settings.app_log_file,
                environment=settings.app_env,
            ),
            rate_limit_headers=self.RATE_LIMIT_HEADERS,
        )

    def has_credentials(self) -> bool:
        return self.credentials.is_complete

    @abc.abstractmethod
    def requires_credentials(self, method: str, endpoint: str) -> bool:
        raise NotImplementedError

    def get(self, endpoint: str, params: dict[str, Any] | None = None, cancel: CancelToken | None = None) -> dict[str, Any]:
        return self.request("GET", endpoint, params, cancel)

    def post(self, endpoint: str, params: dict[str, Any] | None = None, cancel: CancelToken | None = None) -> dict[str, Any]:
        return self.request("POST", endpoint, params, cancel)

    def delete(self, endpoint: str, params: dict[str, Any] | None = None, cancel: CancelToken | None = None) -> dict[str, Any]:
        return self.request("DELETE", endpoint, params, cancel)

    def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        cancel: CancelToken | None = None,
    ) -> dict[str, Any]:
        method = method.upper()
        filtered = {key: value for key, value in (params or {}).items() if value is not None}
        private = self.requires_credentials(method, endpoint)
        if private and not self.has_credentials():
            LOGGER.warning("%s %s %s rejected: missing credentials", self.name, method, endpoint)
            return {"success": False, "error": MISSING_CREDENTIALS}

        intent = RequestIntent(method, endpoint, filtered, is_public=not private)
        try:
            with request_scope():
                result = self.executor.execute(intent, self.credentials, cancel)
        except ExchangeError as exc:
            LOGGER.error("%s %s %s failed: %s", self.name, method, endpoint, exc)
            return {"success": False, "error": str(exc)}
        return result.to_envelope()


class BinanceClient(ExchangeClient):
    """Query-HMAC client. GETs are signed whenever credentials are present."""

    name = "binance"
    RATE_LIMIT_HEADERS = {
        "weight": "x-mbx-used-weight-1m",
        "order_count": "x-mbx-order-count-1m",
    }

    def __init__(
        self,
        api_key: str | None = None,
        secret_key: str | None = None,
        *,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        settings = settings or load_settings()
        credentials = HmacCredentials(
            api_key=api_key or settings.binance_api_key,
            secret_key=secret_key or settings.binance_secret_key,
        )
        signer = QueryHmacSigner(
            settings.resolved_binance_base_url,
            recv_window=settings.binance_recv_window,
            clock=clock,
        )
        super().__init__(
            credentials,
            signer,
            settings=settings,
            session=session,
            clock=clock,
            policy=policy,
            verify_ssl=settings.binance_ssl_verify,
            ca_bundle=settings.binance_ca_bundle,
        )

    def requires_credentials(self, method: str, endpoint: str) -> bool:
        if method != "GET":
            return True
        # signed reads need the full key pair; otherwise the call goes out public
        return self.has_credentials()


class CoinbaseClient(ExchangeClient):
    """ES256 JWT client. Market-data prefixes are public and never signed."""

    name = "coinbase"
    RATE_LIMIT_HEADERS = {
        "limit": "x-ratelimit-limit",
        "remaining": "x-ratelimit-remaining",
        "reset": "x-ratelimit-reset",
    }

    def __init__(
        self,
        api_key: str | None = None,
        private_key_pem: str | None = None,
        key_file: str | None = None,
        *,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        settings = settings or load_settings()
        api_key = api_key or settings.coinbase_api_key
        private_key_pem = private_key_pem or settings.coinbase_api_secret
        key_file = key_file or settings.coinbase_key_file

        if (not api_key or not private_key_pem) and key_file:
            from_file = KeyPairCredentials.from_key_file(key_file)
            api_key = api_key or from_file.api_key
            private_key_pem = private_key_pem or from_file.private_key_pem

        credentials = KeyPairCredentials(
            api_key=api_key or None,
            private_key_pem=normalize_pem(private_key_pem) if private_key_pem else None,
        )
        signer = BearerJwtSigner(settings.resolved_coinbase_base_url, clock=clock)
        super().__init__(
            credentials,
            signer,
            settings=settings,
            session=session,
            clock=clock,
            policy=policy,
            verify_ssl=settings.coinbase_ssl_verify,
            ca_bundle=settings.coinbase_ca_bundle,
        )

    def is_public_endpoint(self, endpoint: str) -> bool:
        return self.signer.is_public(endpoint)

    def requires_credentials(self, method: str, endpoint: str) -> bool:
        if method == "GET":
            return not self.is_public_endpoint(endpoint)
        return True


__all__ = ["BinanceClient", "CoinbaseClient", "ExchangeClient", "MISSING_CREDENTIALS"]
