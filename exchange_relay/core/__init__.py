"""Core exchange integration modules."""

from .auth import (
    BearerJwtSigner,
    HmacCredentials,
    KeyPairCredentials,
    QueryHmacSigner,
    RequestIntent,
    SignedRequest,
    Signer,
)
from .client import BinanceClient, CoinbaseClient, ExchangeClient
from .clock import CancelToken, Clock
from .der import der_to_jose
from .errors import CredentialError, ExchangeError, SigningError
from .executor import RequestExecutor, RetryPolicy, classify_response, parse_retry_after_ms

__all__ = [
    "BearerJwtSigner",
    "BinanceClient",
    "CancelToken",
    "Clock",
    "CoinbaseClient",
    "CredentialError",
    "ExchangeClient",
    "ExchangeError",
    "HmacCredentials",
    "KeyPairCredentials",
    "QueryHmacSigner",
    "RequestExecutor",
    "RequestIntent",
    "RetryPolicy",
    "SignedRequest",
    "Signer",
    "SigningError",
    "classify_response",
    "der_to_jose",
    "parse_retry_after_ms",
]
