"""Command line entry-point for one-off exchange calls."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional

from exchange_relay.config import load_settings
from exchange_relay.core import BinanceClient, CancelToken, CoinbaseClient
from exchange_relay.utils.logging import configure_logging

LOGGER = logging.getLogger(__name__)

CLIENTS = {
    "binance": BinanceClient,
    "coinbase": CoinbaseClient,
}


def parse_param(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    return key, value


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a signed request to an exchange REST API")
    parser.add_argument("exchange", choices=sorted(CLIENTS))
    parser.add_argument("method", type=str.upper, choices=["GET", "POST", "DELETE"])
    parser.add_argument("endpoint", help="API path, e.g. /api/v3/ping")
    parser.add_argument(
        "-p",
        "--param",
        dest="params",
        action="append",
        type=parse_param,
        default=[],
        help="Request parameter as key=value (repeatable, order is kept)",
    )
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument("--timeout", type=float, default=None, help="Overall deadline in seconds")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.env_file)
    configure_logging(args.verbose or settings.app_debug)

    client = CLIENTS[args.exchange](settings=settings)
    params: dict[str, Any] = dict(args.params)
    cancel = CancelToken.with_timeout(args.timeout) if args.timeout else None

    LOGGER.debug("%s %s %s params=%s", args.exchange, args.method, args.endpoint, params)
    envelope = client.request(args.method, args.endpoint, params, cancel)
    print(json.dumps(envelope, ensure_ascii=False, indent=2))
    return 0 if envelope.get("success") else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
