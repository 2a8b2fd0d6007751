from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BINANCE_BASE_URL = "https://api.binance.com"
BINANCE_TESTNET_URL = "https://testnet.binance.vision"
COINBASE_BASE_URL = "https://api.coinbase.com"


class Settings(BaseSettings):
    """Central configuration object loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    binance_api_key: str | None = Field(None, alias="BINANCE_API_KEY")
    binance_secret_key: str | None = Field(None, alias="BINANCE_SECRET_KEY")
    binance_base_url: str | None = Field(None, alias="BINANCE_BASE_URL")
    binance_testnet: bool = Field(False, alias="BINANCE_TESTNET")
    binance_recv_window: int = Field(5000, alias="BINANCE_RECV_WINDOW", gt=0)
    binance_ssl_verify: bool = Field(True, alias="BINANCE_SSL_VERIFY")
    binance_ca_bundle: str | None = Field(None, alias="BINANCE_CA_BUNDLE")

    coinbase_api_key: str | None = Field(None, alias="COINBASE_API_KEY")
    coinbase_api_secret: str | None = Field(None, alias="COINBASE_API_SECRET")
    coinbase_key_file: str | None = Field(None, alias="COINBASE_KEY_FILE")
    coinbase_base_url: str | None = Field(None, alias="COINBASE_BASE_URL")
    coinbase_ssl_verify: bool = Field(True, alias="COINBASE_SSL_VERIFY")
    coinbase_ca_bundle: str | None = Field(None, alias="COINBASE_CA_BUNDLE")

    # per attempt, not cumulative across retries
    request_timeout: float = Field(10.0, alias="EXCHANGE_TIMEOUT", gt=0)

    app_debug: bool = Field(False, alias="APP_DEBUG")
    app_log_file: str | None = Field(None, alias="APP_LOG_FILE")
    app_env: str = Field("development", alias="APP_ENV")

    @field_validator("binance_base_url", "coinbase_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None

    @field_validator(
        "binance_api_key",
        "binance_secret_key",
        "binance_ca_bundle",
        "coinbase_api_key",
        "coinbase_api_secret",
        "coinbase_key_file",
        "coinbase_ca_bundle",
        "app_log_file",
    )
    @classmethod
    def _blank_as_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    @property
    def resolved_binance_base_url(self) -> str:
        if self.binance_base_url:
            return self.binance_base_url
        return BINANCE_TESTNET_URL if self.binance_testnet else BINANCE_BASE_URL

    @property
    def resolved_coinbase_base_url(self) -> str:
        return self.coinbase_base_url or COINBASE_BASE_URL

    @staticmethod
    def usable_ca_bundle(path: str | None) -> str | None:
        if path and Path(path).is_file():
            return path
        return None


def load_settings(env_path: str | Path | None = None) -> Settings:
    """Load settings from environment variables or .env file.

    Args:
        env_path: Optional path to .env file. If None, uses default .env file.

    Returns:
        Settings instance loaded from environment variables.
    """
    if env_path:
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()
    return Settings()
