from __future__ import annotations

import pytest
from pydantic import ValidationError

from exchange_relay.config import Settings, load_settings

from .fakes import make_settings


def test_defaults() -> None:
    settings = make_settings()
    assert settings.resolved_binance_base_url == "https://api.binance.com"
    assert settings.resolved_coinbase_base_url == "https://api.coinbase.com"
    assert settings.binance_recv_window == 5000
    assert settings.binance_ssl_verify is True
    assert settings.request_timeout == 10.0
    assert settings.app_debug is False
    assert settings.app_env == "development"


def test_testnet_and_custom_base_url() -> None:
    assert make_settings(BINANCE_TESTNET="true").resolved_binance_base_url == "https://testnet.binance.vision"
    custom = make_settings(BINANCE_TESTNET="true", BINANCE_BASE_URL="https://custom.binance.com/")
    assert custom.resolved_binance_base_url == "https://custom.binance.com"


def test_flags_and_blank_values() -> None:
    settings = make_settings(
        BINANCE_SSL_VERIFY="false",
        BINANCE_RECV_WINDOW="10000",
        BINANCE_API_KEY="   ",
        APP_DEBUG="1",
    )
    assert settings.binance_ssl_verify is False
    assert settings.binance_recv_window == 10000
    assert settings.binance_api_key is None
    assert settings.app_debug is True


def test_invalid_timeout_is_rejected() -> None:
    with pytest.raises(ValidationError):
        make_settings(EXCHANGE_TIMEOUT=0)


def test_usable_ca_bundle(tmp_path) -> None:
    bundle = tmp_path / "ca.pem"
    bundle.write_text("cert")
    assert Settings.usable_ca_bundle(str(bundle)) == str(bundle)
    assert Settings.usable_ca_bundle(str(tmp_path / "nope.pem")) is None
    assert Settings.usable_ca_bundle(None) is None


def test_env_file_is_read(tmp_path, monkeypatch) -> None:
    for name in ("COINBASE_API_KEY", "BINANCE_RECV_WINDOW", "APP_ENV"):
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("COINBASE_API_KEY=organizations/o/apiKeys/k\nBINANCE_RECV_WINDOW=6000\nAPP_ENV=production\n")

    settings = Settings(_env_file=env_file)
    assert settings.coinbase_api_key == "organizations/o/apiKeys/k"
    assert settings.binance_recv_window == 6000
    assert settings.app_env == "production"


def test_load_settings_loads_dotenv_path(monkeypatch) -> None:
    seen = []
    monkeypatch.setattr("exchange_relay.config.settings.load_dotenv", lambda **kwargs: seen.append(kwargs))
    monkeypatch.setattr("exchange_relay.config.settings.Settings", lambda: "settings")

    assert load_settings("custom.env") == "settings"
    assert seen == [{"dotenv_path": "custom.env"}]
