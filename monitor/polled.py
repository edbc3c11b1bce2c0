"""Polled channel: periodic HTTP fetches of current status and chart history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from cli.client import ApiClient, ApiError
from models.readings import CanonicalReading, ReadingSource, SensorLayout
from monitor.dashboard import Channel, Dashboard
from monitor.scheduler import RepeatingTask
from services.normalizer import ReadingNormalizer
from services.reconciler import ReconciliationResult, Reconciler, parse_timestamp

logger = logging.getLogger(__name__)


class PolledAdapter:
    def __init__(
        self,
        client: ApiClient,
        dashboard: Dashboard,
        normalizer: ReadingNormalizer,
        layout: SensorLayout,
        interval: float,
    ) -> None:
        self.client = client
        self.dashboard = dashboard
        self.normalizer = normalizer
        self.layout = layout
        self._task = RepeatingTask("poll-current-status", self.poll_once, interval)

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def poll_once(self) -> List[CanonicalReading]:
        """Fetch ``current-status`` once; failures only degrade the channel status."""
        if not self.dashboard.state.mode.polled_enabled:
            return []

        try:
            rows = await self.client.current_status()
        except ApiError as exc:
            logger.warning(
                "Polled fetch failed",
                extra={"status": exc.status_code, "reason": str(exc)},
            )
            self.dashboard.set_status(Channel.polled, False, "HTTP Error")
            self.dashboard.log(f"HTTP polling error: {exc}", "error")
            return []

        if not rows:
            logger.info("No polled data yet")
            self.dashboard.set_status(Channel.polled, True, "No HTTP data yet")
            self.dashboard.log("No HTTP data yet")
            return []

        row = rows[0]
        observed_at = parse_timestamp(row.get("timestamp")) or datetime.now(timezone.utc)
        readings = self.normalizer.normalize(row, self.layout, ReadingSource.polled, observed_at)
        self.dashboard.count_message(Channel.polled)
        self.dashboard.set_status(Channel.polled, True, "HTTP Synced")
        self.dashboard.apply_readings(readings, ReadingSource.polled)
        return readings


class ChartRefresher:
    def __init__(
        self,
        client: ApiClient,
        dashboard: Dashboard,
        reconciler: Reconciler,
        interval: float,
    ) -> None:
        self.client = client
        self.dashboard = dashboard
        self.reconciler = reconciler
        self._task = RepeatingTask("refresh-charts", self.refresh_once, interval)

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def refresh_once(self) -> Optional[ReconciliationResult]:
        if not self.dashboard.state.mode.polled_enabled:
            return None

        try:
            result = await self.reconciler.reconcile(self.client.history_all, self.client.raw_data)
        except ApiError as exc:
            logger.warning(
                "Chart refresh failed",
                extra={"status": exc.status_code, "reason": str(exc)},
            )
            self.dashboard.log(f"Chart update failed: {exc}", "error")
            return None

        if result.row_count == 0:
            logger.info("No chart data yet", extra={"source": result.source.value})
            self.dashboard.log("Waiting for data to build charts")
            return result

        logger.info(
            "Charts refreshed",
            extra={"source": result.source.value, "row_count": result.row_count},
        )
        self.dashboard.apply_chart(result)
        return result
