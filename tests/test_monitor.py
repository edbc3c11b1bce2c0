"""Mode transitions of the monitor service."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List

from cli.config import CLIConfig
from models.readings import MonitorMode, SensorGroup
from monitor.dashboard import Channel
from monitor.service import build_monitor


class ConnectingMqttClient:
    """Accepts every connection as soon as the network loop starts."""

    def __init__(self) -> None:
        self.disconnected = False
        self.on_connect: Any = None
        self.on_disconnect: Any = None
        self.on_message: Any = None

    def connect_async(self, host: str, port: int, keepalive: int) -> None:
        return None

    def loop_start(self) -> None:
        self.on_connect(self, None, {}, SimpleNamespace(is_failure=False), None)

    def loop_stop(self) -> None:
        return None

    def disconnect(self) -> None:
        self.disconnected = True

    def subscribe(self, topic: str) -> None:
        return None


class QuietGateway:
    def __init__(self) -> None:
        self.calls: List[str] = []

    async def current_status(self) -> List[Dict[str, Any]]:
        self.calls.append("current-status")
        return [{"milk": {"temperature": 4, "humidity": 60}, "vegetables": {"temperature": 8, "humidity": 80}}]

    async def history_all(self) -> List[Dict[str, Any]]:
        self.calls.append("history-all")
        return [{"unit_type": "milk", "time": "2024-01-01 10:00:00", "avg_temp": 4, "avg_humidity": 60}]

    async def raw_data(self) -> List[Dict[str, Any]]:
        self.calls.append("raw-data")
        return []


def _build(mode: MonitorMode):
    clients: List[ConnectingMqttClient] = []

    def factory() -> ConnectingMqttClient:
        client = ConnectingMqttClient()
        clients.append(client)
        return client

    gateway = QuietGateway()
    config = CLIConfig(mode=mode, poll_interval=10, chart_interval=10)
    service = build_monitor(config, gateway, mqtt_client_factory=factory)
    return service, gateway, clients


def test_both_mode_starts_every_channel() -> None:
    service, gateway, clients = _build(MonitorMode.both)

    async def scenario() -> None:
        await service.start()
        await asyncio.sleep(0.01)
        assert service.live.running
        assert service.poller.running and service.charts.running
        await service.shutdown()

    asyncio.run(scenario())

    assert len(clients) == 1
    assert "current-status" in gateway.calls and "history-all" in gateway.calls
    assert service.dashboard.state.latest[SensorGroup.milk].temperature == 4
    assert service.dashboard.chart_count == 0


def test_switching_to_live_stops_polling_and_releases_charts() -> None:
    service, gateway, clients = _build(MonitorMode.both)

    async def scenario() -> None:
        await service.start()
        await asyncio.sleep(0.01)
        assert service.dashboard.chart_count == 2

        await service.set_mode(MonitorMode.live)
        assert not service.poller.running and not service.charts.running
        assert service.dashboard.chart_count == 0
        assert service.dashboard.state.channels[Channel.polled].text == "HTTP Disabled"
        assert service.live.running

        await service.set_mode(MonitorMode.live)
        await service.shutdown()

    asyncio.run(scenario())

    assert len(clients) == 1


def test_switching_to_polled_disconnects_live() -> None:
    service, gateway, clients = _build(MonitorMode.live)

    async def scenario() -> None:
        await service.start()
        assert not service.poller.running
        assert gateway.calls == []

        await service.set_mode(MonitorMode.polled)
        await asyncio.sleep(0.01)
        assert not service.live.running
        assert service.poller.running
        await service.shutdown()
        await service.shutdown()

    asyncio.run(scenario())

    assert clients[0].disconnected
    assert service.dashboard.state.channels[Channel.live].text == "MQTT Disabled"
    assert "current-status" in gateway.calls


def test_run_with_duration_shuts_down() -> None:
    service, _gateway, clients = _build(MonitorMode.both)

    asyncio.run(service.run(duration=0.02))

    assert not service.poller.running
    assert not service.live.running
    assert clients[0].disconnected
