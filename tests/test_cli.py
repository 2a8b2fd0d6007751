from __future__ import annotations

import json

import pytest

from exchange_relay import cli

from .fakes import make_settings


class DummyClient:
    instances: list["DummyClient"] = []

    def __init__(self, *args, **kwargs) -> None:
        self.calls = []
        self.response = {"success": True, "data": {"price": "42000.00"}}
        DummyClient.instances.append(self)

    def request(self, method, endpoint, params=None, cancel=None):
        self.calls.append((method, endpoint, params, cancel))
        return self.response


@pytest.fixture
def patched_cli(monkeypatch):
    DummyClient.instances = []
    monkeypatch.setattr(cli, "load_settings", lambda *args, **kwargs: make_settings())
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setitem(cli.CLIENTS, "binance", DummyClient)
    return DummyClient


def test_cli_prints_envelope(patched_cli, capsys):
    exit_code = cli.main(["binance", "get", "/api/v3/ticker/price", "-p", "symbol=BTCUSDT", "-p", "x=1"])

    assert exit_code == 0
    method, endpoint, params, cancel = patched_cli.instances[0].calls[0]
    assert (method, endpoint) == ("GET", "/api/v3/ticker/price")
    assert list(params.items()) == [("symbol", "BTCUSDT"), ("x", "1")]
    assert cancel is None
    assert json.loads(capsys.readouterr().out)["data"]["price"] == "42000.00"


def test_cli_failure_exit_code_and_deadline(patched_cli, monkeypatch, capsys):
    def failing(self, method, endpoint, params=None, cancel=None):
        self.calls.append((method, endpoint, params, cancel))
        return {"success": False, "error": "HTTP 500", "code": 500}

    monkeypatch.setattr(DummyClient, "request", failing)
    assert cli.main(["binance", "delete", "/api/v3/order", "--timeout", "5"]) == 1
    assert patched_cli.instances[0].calls[0][3] is not None
    assert json.loads(capsys.readouterr().out)["code"] == 500


def test_parse_param_rejects_missing_separator():
    with pytest.raises(SystemExit):
        cli.parse_args(["binance", "get", "/api/v3/ping", "-p", "novalue"])
