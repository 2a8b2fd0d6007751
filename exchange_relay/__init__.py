"""Signed, retrying REST access to Binance and Coinbase."""

__version__ = "0.1.0"
