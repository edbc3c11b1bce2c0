"""Wiring of the live and polled channels behind one mode switch."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from cli.client import ApiClient
from cli.config import CLIConfig
from models.readings import Limits, MonitorMode
from monitor.dashboard import Channel, Dashboard, Renderer
from monitor.live import LiveAdapter
from monitor.polled import ChartRefresher, PolledAdapter
from services.normalizer import ReadingNormalizer
from services.reconciler import Reconciler
from services.thresholds import ThresholdEvaluator

logger = logging.getLogger(__name__)


class MonitorService:
    """Owns both channels. ``set_mode`` stops what the new mode disables, then starts the rest."""

    def __init__(
        self,
        dashboard: Dashboard,
        live: LiveAdapter,
        poller: PolledAdapter,
        charts: ChartRefresher,
    ) -> None:
        self.dashboard = dashboard
        self.live = live
        self.poller = poller
        self.charts = charts

    @property
    def mode(self) -> MonitorMode:
        return self.dashboard.state.mode

    async def start(self) -> None:
        await self._apply_mode()

    async def set_mode(self, mode: MonitorMode) -> None:
        self.dashboard.set_mode(mode)
        await self._apply_mode()

    async def shutdown(self) -> None:
        await self.poller.stop()
        await self.charts.stop()
        await self.live.stop()
        self.dashboard.release_charts()
        logger.info("Monitor stopped", extra={"mode": self.mode.value})

    async def run(self, duration: Optional[float] = None) -> None:
        """Start, wait ``duration`` seconds (forever when ``None``), then shut down."""
        await self.start()
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            await self.shutdown()

    async def _apply_mode(self) -> None:
        mode = self.mode
        logger.info("Applying monitor mode", extra={"mode": mode.value})

        if mode.polled_enabled:
            self.dashboard.set_status(Channel.polled, False, "HTTP Active")
            self.poller.start()
            self.charts.start()
        elif self.poller.running or self.charts.running:
            await self.poller.stop()
            await self.charts.stop()
            self.dashboard.release_charts()
            self.dashboard.set_status(Channel.polled, False, "HTTP Disabled")

        if mode.live_enabled:
            await self.live.start()
        else:
            await self.live.stop()


def build_monitor(
    config: CLIConfig,
    client: ApiClient,
    renderer: Optional[Renderer] = None,
    limits: Optional[Limits] = None,
    mqtt_client_factory: Optional[Callable[[], Any]] = None,
) -> MonitorService:
    dashboard = Dashboard(ThresholdEvaluator(limits or Limits()), renderer, config.mode)
    normalizer = ReadingNormalizer()
    live = LiveAdapter(config, dashboard, normalizer, client_factory=mqtt_client_factory)
    poller = PolledAdapter(client, dashboard, normalizer, config.layout, config.poll_interval)
    charts = ChartRefresher(client, dashboard, Reconciler(), config.chart_interval)
    return MonitorService(dashboard, live, poller, charts)
