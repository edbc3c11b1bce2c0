"""Dashboard state and the presentation sink that owns it."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, Dict, List, Optional, Protocol, Sequence

from models.readings import (
    DUAL_GROUPS,
    AlertEvent,
    CanonicalReading,
    GroupSummary,
    MonitorMode,
    ReadingSource,
    SensorGroup,
    SeriesPoint,
)
from services.reconciler import ReconciliationResult
from services.thresholds import ThresholdEvaluator

logger = logging.getLogger(__name__)

MESSAGE_LOG_SIZE = 50


class Channel(str, Enum):
    live = "live"
    polled = "polled"


@dataclass
class ChannelState:
    ok: bool = False
    text: str = "Idle"


@dataclass
class Counters:
    live_messages: int = 0
    polled_fetches: int = 0
    alert_passes: int = 0
    data_points: int = 0


@dataclass(frozen=True)
class LogEntry:
    at: datetime
    level: str
    text: str


@dataclass
class DashboardState:
    """Everything the dashboard shows. Only the most recent reading per group is kept."""

    mode: MonitorMode = MonitorMode.both
    latest: Dict[SensorGroup, CanonicalReading] = field(default_factory=dict)
    channels: Dict[Channel, ChannelState] = field(
        default_factory=lambda: {channel: ChannelState() for channel in Channel}
    )
    active_alerts: Dict[SensorGroup, List[AlertEvent]] = field(default_factory=dict)
    counters: Counters = field(default_factory=Counters)
    summaries: Dict[SensorGroup, GroupSummary] = field(default_factory=dict)
    chart: Optional[ReconciliationResult] = None
    messages: Deque[LogEntry] = field(default_factory=lambda: deque(maxlen=MESSAGE_LOG_SIZE))


class ChartHandle(Protocol):
    def release(self) -> None: ...


class Renderer(Protocol):
    def show_reading(self, reading: CanonicalReading) -> None: ...

    def show_alerts(self, group: SensorGroup, alerts: Sequence[AlertEvent]) -> None: ...

    def show_status(self, channel: Channel, state: ChannelState) -> None: ...

    def create_chart(
        self, group: SensorGroup, points: Sequence[SeriesPoint], summary: GroupSummary
    ) -> ChartHandle: ...

    def show_message(self, entry: LogEntry) -> None: ...


class _NullChart:
    def release(self) -> None:
        return None


class NullRenderer:
    """Renderer that draws nothing; used headless and in tests."""

    def show_reading(self, reading: CanonicalReading) -> None:
        return None

    def show_alerts(self, group: SensorGroup, alerts: Sequence[AlertEvent]) -> None:
        return None

    def show_status(self, channel: Channel, state: ChannelState) -> None:
        return None

    def create_chart(
        self, group: SensorGroup, points: Sequence[SeriesPoint], summary: GroupSummary
    ) -> ChartHandle:
        return _NullChart()

    def show_message(self, entry: LogEntry) -> None:
        return None


class Dashboard:
    """Presentation sink: applies readings, alerts and chart results to one state record."""

    def __init__(
        self,
        evaluator: ThresholdEvaluator,
        renderer: Optional[Renderer] = None,
        mode: MonitorMode = MonitorMode.both,
    ) -> None:
        self.evaluator = evaluator
        self.renderer: Renderer = renderer or NullRenderer()
        self.state = DashboardState(mode=mode)
        self._charts: Dict[SensorGroup, ChartHandle] = {}

    def set_mode(self, mode: MonitorMode) -> None:
        if mode is self.state.mode:
            return
        self.state.mode = mode
        self.log(f"Protocol switched to: {mode.value.upper()}")

    def set_status(self, channel: Channel, ok: bool, text: str) -> None:
        channel_state = self.state.channels[channel]
        channel_state.ok = ok
        channel_state.text = text
        self.renderer.show_status(channel, channel_state)

    def count_message(self, channel: Channel) -> None:
        if channel is Channel.live:
            self.state.counters.live_messages += 1
        else:
            self.state.counters.polled_fetches += 1

    def apply_readings(
        self, readings: Sequence[CanonicalReading], source: ReadingSource
    ) -> List[AlertEvent]:
        """Show readings, evaluate them and replace each group's active alerts."""
        if not readings:
            return []

        for reading in readings:
            self.state.latest[reading.sensor_group] = reading
            self.renderer.show_reading(reading)

        alerts = self.evaluator.evaluate_all(readings)
        for group in dict.fromkeys(reading.sensor_group for reading in readings):
            # A pass without a temperature alert clears the one shown before.
            group_alerts = [alert for alert in alerts if alert.sensor_group is group]
            self.state.active_alerts[group] = group_alerts
            self.renderer.show_alerts(group, group_alerts)

        for alert in alerts:
            logger.warning(
                "Threshold exceeded",
                extra={
                    "sensor_group": alert.sensor_group.value,
                    "kind": alert.kind.value,
                    "value": alert.value,
                    "limit": alert.limit,
                },
            )
        if alerts:
            self.state.counters.alert_passes += 1

        self.state.counters.data_points += 1
        summary = " | ".join(
            f"{reading.sensor_group.value} {reading.temperature:.1f}°C/{reading.humidity:.1f}%"
            for reading in readings
        )
        self.log(f"{source.value.upper()}: {summary}")
        return alerts

    def apply_chart(self, result: ReconciliationResult) -> None:
        """Replace every group's chart with the latest completed result."""
        for group, points in result.series.items():
            summary = result.summaries.get(group, GroupSummary())
            previous = self._charts.pop(group, None)
            if previous is not None:
                previous.release()
            self._charts[group] = self.renderer.create_chart(group, points, summary)
        self.state.summaries = dict(result.summaries)
        self.state.chart = result
        counts = ", ".join(
            f"{group.value} {len(result.series.get(group, []))} points"
            for group in DUAL_GROUPS
            if group in result.series
        )
        self.log(f"Charts updated from {result.source.value} data: {counts}")

    def release_charts(self) -> None:
        while self._charts:
            _, handle = self._charts.popitem()
            handle.release()
        self.state.chart = None

    @property
    def chart_count(self) -> int:
        return len(self._charts)

    def log(self, text: str, level: str = "info") -> None:
        entry = LogEntry(at=datetime.now(timezone.utc), level=level, text=text)
        self.state.messages.appendleft(entry)
        self.renderer.show_message(entry)
