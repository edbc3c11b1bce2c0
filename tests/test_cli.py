from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiError


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.status_rows: List[Dict[str, Any]] = [
            {
                "device_id": "ESP32",
                "milk": {"temperature": 25.0, "humidity": 60.0},
                "vegetables": {"temperature": 8.0, "humidity": 80.0},
                "timestamp": "2024-01-01T10:00:00",
            }
        ]
        self.history_rows: List[Dict[str, Any]] = [
            {"unit_type": "milk", "time": "2024-01-01 10:00:00", "avg_temp": 4.0, "avg_humidity": 60.0},
            {"unit_type": "vegetables", "time": "2024-01-01 10:00:00", "avg_temp": 9.0, "avg_humidity": 85.0},
        ]
        self.sent: List[Dict[str, Any]] = []
        self.error: ApiError | None = None
        self.closed = False

    async def __aenter__(self) -> "StubClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        self.closed = True

    async def current_status(self) -> List[Dict[str, Any]]:
        if self.error is not None:
            raise self.error
        return self.status_rows

    async def history_all(self) -> List[Dict[str, Any]]:
        return self.history_rows

    async def raw_data(self) -> List[Dict[str, Any]]:
        return []

    async def send_reading(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.sent.append(dict(payload))
        received = {}
        if "milk" in payload:
            received["milk"] = {"temp": payload["milk"]["temperature"], "hum": payload["milk"]["humidity"]}
        if "temperature" in payload:
            received["single"] = {"temp": payload["temperature"], "hum": payload["humidity"]}
        return {"status": "success", "device_id": payload["device_id"], "data_received": received, "stored": 1}


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_status_prints_readings_and_alerts(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Current Status" in result.stdout
    assert "milk: 25.0°C" in result.stdout
    assert "HIGH TEMP" in result.stdout
    assert stub.closed is True


def test_status_without_data(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.status_rows = []
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "No readings available." in result.stdout


def test_status_reports_api_errors(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.error = ApiError("Request failed with status 500: Storage query failed.", status_code=500)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 1
    assert "Storage query failed." in result.output


def test_history_prints_each_group(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch, StubClient(config=None))

    result = runner.invoke(app, ["history"])

    assert result.exit_code == 0
    assert "source: aggregated" in result.stdout
    assert "Milk history (1 points)" in result.stdout
    assert "Vegetables history (1 points)" in result.stdout
    assert "01 Jan 10:00" in result.stdout


def test_send_dual_reading(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "--milk-temp", "4.5", "--milk-humidity", "70"])

    assert result.exit_code == 0
    assert stub.sent == [{"device_id": "ESP32", "milk": {"temperature": 4.5, "humidity": 70.0}}]
    assert "Reading stored for ESP32." in result.stdout


def test_send_requires_values(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send"])

    assert result.exit_code == 2
    assert stub.sent == []


def test_base_url_option_reaches_client(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://gateway:9000/api/", "--timeout", "3", "status"])

    assert result.exit_code == 0
    assert stub.config.base_url == "http://gateway:9000/api"
    assert stub.config.request_timeout == 3.0
