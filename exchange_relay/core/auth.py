"""Credentials and request signers for the supported exchanges."""

from __future__ import annotations

import abc
import base64
import hmac
import json
import logging
import secrets
from dataclasses import dataclass, field
from hashlib import sha256
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .clock import Clock
from .der import der_to_jose
from .errors import CredentialError, SigningError

LOGGER = logging.getLogger(__name__)

JWT_TTL = 120
JWT_ISSUER = "cdp"
USER_AGENT = "exchange-relay-python"

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _b64url_encode(payload: bytes) -> str:
    return base64.urlsafe_b64encode(payload).rstrip(b"=").decode("utf-8")


def _stringify(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(_stringify(item)) for item in value)
    return value


def build_query(params: dict[str, Any]) -> str:
    """Encode ``params`` in insertion order, the way the exchanges expect."""

    return urlencode([(key, _stringify(value)) for key, value in params.items()])


def normalize_pem(secret: str) -> str:
    """Turn escaped ``\\n`` sequences from env files back into newlines."""

    return secret.replace("\\r", "\r").replace("\\n", "\n").strip()


@dataclass(frozen=True)
class HmacCredentials:
    """API key plus shared secret for query-string HMAC signing."""

    api_key: str | None = None
    secret_key: str | None = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key and self.secret_key)


@dataclass(frozen=True)
class KeyPairCredentials:
    """API key name plus EC private key (PEM) for ES256 JWT signing."""

    api_key: str | None = None
    private_key_pem: str | None = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key and self.private_key_pem)

    @classmethod
    def from_key_file(cls, path: str | Path) -> "KeyPairCredentials":
        """Load ``{"name": ..., "privateKey": ...}`` as exported by the exchange.

        Missing or unreadable files yield empty credentials.
        """

        key_path = Path(path)
        if not key_path.is_file():
            LOGGER.warning("Key file not found: %s", key_path)
            return cls()
        try:
            data = json.loads(key_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Failed to read key file %s: %s", key_path, exc)
            return cls()
        if not isinstance(data, dict):
            return cls()
        name = data.get("name")
        private_key = data.get("privateKey")
        return cls(
            api_key=str(name) if name else None,
            private_key_pem=normalize_pem(str(private_key)) if private_key else None,
        )


Credentials = HmacCredentials | KeyPairCredentials


@dataclass(frozen=True)
class RequestIntent:
    """Unsigned description of a single logical call."""

    method: str
    endpoint: str
    params: dict[str, Any] = field(default_factory=dict)
    is_public: bool = False


@dataclass(frozen=True)
class SignedRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None = None


class Signer(abc.ABC):
    """Turns a :class:`RequestIntent` into a ready-to-send request."""

    def __init__(self, base_url: str, clock: Clock | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.clock = clock or Clock()

    @abc.abstractmethod
    def sign(self, intent: RequestIntent, credentials: Any) -> SignedRequest:
        raise NotImplementedError

    def _url(self, endpoint: str, query: str = "") -> str:
        url = f"{self.base_url}{endpoint}"
        return f"{url}?{query}" if query else url


class QueryHmacSigner(Signer):
    """Binance-style signing: HMAC-SHA256 over the canonical query string."""

    def __init__(self, base_url: str, recv_window: int = 5000, clock: Clock | None = None) -> None:
        super().__init__(base_url, clock)
        self.recv_window = recv_window

    def signature(self, secret_key: str, query_string: str) -> str:
        return hmac.new(secret_key.encode(), query_string.encode(), sha256).hexdigest()

    def sign(self, intent: RequestIntent, credentials: HmacCredentials) -> SignedRequest:
        method = intent.method.upper()
        headers = {"Accept": "application/json"}
        if credentials.api_key:
            headers["X-MBX-APIKEY"] = credentials.api_key

        params = dict(intent.params)
        writes = method in STATE_CHANGING_METHODS

        if not credentials.is_complete or (intent.is_public and not writes):
            return SignedRequest(method, self._url(intent.endpoint, build_query(params)), headers)

        if writes:
            params["recvWindow"] = self.recv_window
        params["timestamp"] = int(self.clock.time() * 1000)
        query_string = build_query(params)
        signed = f"{query_string}&signature={self.signature(credentials.secret_key, query_string)}"

        if not writes:
            return SignedRequest(method, self._url(intent.endpoint, signed), headers)

        headers["Content-Type"] = "application/x-www-form-urlencoded"
        return SignedRequest(method, self._url(intent.endpoint), headers, signed.encode())


class BearerJwtSigner(Signer):
    """Coinbase-style signing: a fresh ES256 JWT per request."""

    PUBLIC_PREFIXES: tuple[str, ...] = (
        "/api/v3/brokerage/market/",
        "/api/v3/brokerage/time",
    )

    def __init__(
        self,
        base_url: str,
        clock: Clock | None = None,
        public_prefixes: tuple[str, ...] | None = None,
        ttl: int = JWT_TTL,
    ) -> None:
        super().__init__(base_url, clock)
        self.host = self.resolve_host(self.base_url)
        self.public_prefixes = public_prefixes if public_prefixes is not None else self.PUBLIC_PREFIXES
        self.ttl = ttl

    @staticmethod
    def resolve_host(base_url: str) -> str:
        parts = urlsplit(base_url)
        if parts.hostname:
            return f"{parts.hostname}:{parts.port}" if parts.port else parts.hostname
        return base_url.split("://", 1)[-1] or "api.coinbase.com"

    def is_public(self, endpoint: str) -> bool:
        return any(endpoint.startswith(prefix) for prefix in self.public_prefixes)

    def sign(self, intent: RequestIntent, credentials: KeyPairCredentials) -> SignedRequest:
        method = intent.method.upper()
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if method in STATE_CHANGING_METHODS:
            url = self._url(intent.endpoint)
            body = json.dumps(intent.params, separators=(",", ":"), default=str).encode()
        else:
            url = self._url(intent.endpoint, build_query(intent.params))
            body = None

        if not (intent.is_public or self.is_public(intent.endpoint)):
            headers["Authorization"] = f"Bearer {self.generate_jwt(method, intent.endpoint, credentials)}"
        return SignedRequest(method, url, headers, body)

    def generate_jwt(self, method: str, endpoint: str, credentials: KeyPairCredentials) -> str:
        """Create a signed ES256 JWT bound to ``METHOD host/path``."""

        if not credentials.is_complete:
            raise CredentialError("Missing credentials for JWT generation")

        now = int(self.clock.time())
        header = {
            "alg": "ES256",
            "typ": "JWT",
            "kid": credentials.api_key,
            "nonce": secrets.token_hex(16),
        }
        payload = {
            "sub": credentials.api_key,
            "iss": JWT_ISSUER,
            "nbf": now,
            "exp": now + self.ttl,
            "uri": f"{method.upper()} {self.host}{endpoint}",
        }

        header_enc = _b64url_encode(json.dumps(header, separators=(",", ":")).encode())
        payload_enc = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode())
        message = f"{header_enc}.{payload_enc}"

        private_key = self._load_private_key(credentials.private_key_pem)
        try:
            der_signature = private_key.sign(message.encode(), ec.ECDSA(hashes.SHA256()))
        except (ValueError, TypeError) as exc:
            raise SigningError(f"Failed to sign JWT: {exc}") from exc

        signature = der_to_jose(der_signature, 32)
        return f"{message}.{_b64url_encode(signature)}"

    @staticmethod
    def _load_private_key(pem: str) -> ec.EllipticCurvePrivateKey:
        try:
            key = serialization.load_pem_private_key(normalize_pem(pem).encode(), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError("Invalid private key for JWT signing") from exc
        if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
            raise SigningError("JWT signing requires a P-256 EC private key")
        return key


__all__ = [
    "BearerJwtSigner",
    "Credentials",
    "HmacCredentials",
    "KeyPairCredentials",
    "QueryHmacSigner",
    "RequestIntent",
    "SignedRequest",
    "Signer",
    "build_query",
    "normalize_pem",
]
