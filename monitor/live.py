"""Live channel: one long-lived MQTT subscription feeding the dashboard.

paho-mqtt runs its network loop on its own thread. Every callback is handed
back to the asyncio loop with ``call_soon_threadsafe`` so readings are processed
on the loop thread, in arrival order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

import paho.mqtt.client as mqtt

from cli.config import CLIConfig
from models.readings import CanonicalReading, ReadingSource
from monitor.dashboard import Channel, Dashboard
from services.normalizer import ReadingNormalizer

logger = logging.getLogger(__name__)

MQTT_KEEPALIVE = 60


def build_mqtt_client(config: CLIConfig) -> mqtt.Client:
    client = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"dashboard_{secrets.token_hex(4)}",
        transport=config.mqtt_transport,
    )
    if config.mqtt_transport == "websockets":
        client.ws_set_options(path=config.mqtt_ws_path)
    return client


class LiveAdapter:

    def __init__(
        self,
        config: CLIConfig,
        dashboard: Dashboard,
        normalizer: ReadingNormalizer,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.config = config
        self.dashboard = dashboard
        self.normalizer = normalizer
        self._client_factory = client_factory or (lambda: build_mqtt_client(config))
        self._client: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connect_waiter: Optional[asyncio.Future[bool]] = None

    @property
    def running(self) -> bool:
        return self._client is not None

    async def start(self) -> bool:
        """Connect and subscribe; returns whether the connection came up in time."""
        if not self.dashboard.state.mode.live_enabled:
            return False
        if self._client is not None:
            return True

        self._loop = asyncio.get_running_loop()
        self._connect_waiter = self._loop.create_future()
        client = self._client_factory()
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        self._client = client

        self.dashboard.set_status(Channel.live, False, "MQTT Connecting")
        self.dashboard.log("Connecting to MQTT broker...")
        try:
            client.connect_async(self.config.mqtt_broker, self.config.mqtt_port, MQTT_KEEPALIVE)
            client.loop_start()
            connected = await asyncio.wait_for(
                self._connect_waiter, timeout=self.config.mqtt_connect_timeout
            )
        except (OSError, asyncio.TimeoutError) as exc:
            logger.warning(
                "MQTT connection failed",
                extra={"topic": self.config.mqtt_topic, "reason": repr(exc)},
            )
            self.dashboard.log(f"MQTT connection failed: {exc!r}", "error")
            await self.stop(status_text="MQTT Failed")
            return False

        if not connected:
            await self.stop(status_text="MQTT Failed")
        return connected

    async def stop(self, status_text: str = "MQTT Disabled") -> None:
        client, self._client = self._client, None
        if client is None:
            return
        client.disconnect()
        # loop_stop joins the network thread, which may still be inside a socket connect.
        await asyncio.to_thread(client.loop_stop)
        self.dashboard.set_status(Channel.live, False, status_text)
        self.dashboard.log("MQTT disconnected")

    def handle_payload(self, payload: Union[bytes, str], arrival: datetime) -> List[CanonicalReading]:
        """Decode one message and hand it to the normalizer and the dashboard."""
        if not self.dashboard.state.mode.live_enabled:
            return []

        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            data = json.loads(text.strip())
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning(
                "Invalid live payload received",
                extra={"topic": self.config.mqtt_topic, "reason": str(exc)},
            )
            self.dashboard.log("Invalid MQTT JSON received", "error")
            return []

        self.dashboard.count_message(Channel.live)
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring non-object live payload",
                extra={"topic": self.config.mqtt_topic, "reason": type(data).__name__},
            )
            return []

        readings = self.normalizer.normalize(data, self.config.layout, ReadingSource.live, arrival)
        if readings:
            self.dashboard.apply_readings(readings, ReadingSource.live)
        return readings

    # paho callbacks, network thread

    def _on_connect(self, client: Any, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any = None) -> None:
        failed = bool(reason_code.is_failure)
        if not failed:
            # Every (re)connect is a fresh subscription; nothing missed is replayed.
            client.subscribe(self.config.mqtt_topic)
        self._call_on_loop(self._handle_connect, client, failed, str(reason_code))

    def _on_disconnect(
        self, client: Any, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any = None
    ) -> None:
        self._call_on_loop(self._handle_disconnect, client, bool(reason_code.is_failure), str(reason_code))

    def _on_message(self, client: Any, _userdata: Any, message: Any) -> None:
        self._call_on_loop(self._handle_message, client, message.payload, datetime.now(timezone.utc))

    def _call_on_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    # loop thread

    def _handle_connect(self, client: Any, failed: bool, reason: str) -> None:
        if client is not self._client:
            return
        if failed:
            logger.warning("MQTT connection refused", extra={"reason": reason})
            self.dashboard.set_status(Channel.live, False, "MQTT Failed")
            self.dashboard.log(f"MQTT connection failed: {reason}", "error")
        else:
            logger.info("MQTT connected", extra={"topic": self.config.mqtt_topic})
            self.dashboard.set_status(Channel.live, True, "MQTT Connected")
            self.dashboard.log("MQTT connected - real-time streaming active")
        waiter = self._connect_waiter
        if waiter is not None and not waiter.done():
            waiter.set_result(not failed)

    def _handle_disconnect(self, client: Any, failed: bool, reason: str) -> None:
        if client is not self._client or not failed:
            return
        logger.warning("MQTT connection lost", extra={"reason": reason})
        self.dashboard.set_status(Channel.live, False, "MQTT Lost")
        self.dashboard.log(f"MQTT connection lost: {reason}", "error")

    def _handle_message(self, client: Any, payload: bytes, arrival: datetime) -> None:
        if client is not self._client:
            return
        self.handle_payload(payload, arrival)
