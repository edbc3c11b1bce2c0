"""Presentation sink state transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from models.readings import (
    AlertKind,
    CanonicalReading,
    GroupSummary,
    Limits,
    MonitorMode,
    ReadingSource,
    SensorGroup,
    SeriesPoint,
)
from monitor.dashboard import Channel, Dashboard, MESSAGE_LOG_SIZE, NullRenderer
from services.reconciler import ReconciliationResult, SeriesSource
from services.thresholds import ThresholdEvaluator


class RecordingChart:
    def __init__(self, group: SensorGroup, log: List[str]) -> None:
        self.group = group
        self.log = log
        self.released = False

    def release(self) -> None:
        self.released = True
        self.log.append(f"release {self.group.value}")


class RecordingRenderer(NullRenderer):
    def __init__(self) -> None:
        self.events: List[str] = []
        self.charts: List[RecordingChart] = []

    def create_chart(self, group: SensorGroup, points: Sequence[SeriesPoint], summary: GroupSummary):
        self.events.append(f"create {group.value}")
        chart = RecordingChart(group, self.events)
        self.charts.append(chart)
        return chart


def _reading(group: SensorGroup, temperature: float, humidity: float) -> CanonicalReading:
    return CanonicalReading(group, temperature, humidity, ReadingSource.live, datetime.now(timezone.utc))


def _chart(milk_points: int) -> ReconciliationResult:
    points = [SeriesPoint(f"Reading {index}", 4.0, 60.0) for index in range(1, milk_points + 1)]
    return ReconciliationResult(
        source=SeriesSource.raw,
        row_count=milk_points,
        series={SensorGroup.milk: points, SensorGroup.vegetables: []},
        summaries={SensorGroup.milk: GroupSummary(4.0, 4.0, 60.0, 60.0)},
    )


def _dashboard(renderer=None) -> Dashboard:
    return Dashboard(ThresholdEvaluator(Limits()), renderer)


def test_latest_reading_replaces_previous_one() -> None:
    dashboard = _dashboard()

    dashboard.apply_readings([_reading(SensorGroup.milk, 3, 60)], ReadingSource.live)
    dashboard.apply_readings([_reading(SensorGroup.milk, 5, 61)], ReadingSource.polled)

    assert dashboard.state.latest[SensorGroup.milk].temperature == 5
    assert dashboard.state.counters.data_points == 2


def test_alert_counter_increments_once_per_pass() -> None:
    dashboard = _dashboard()

    alerts = dashboard.apply_readings(
        [_reading(SensorGroup.milk, 25, 95), _reading(SensorGroup.vegetables, -2, 50)],
        ReadingSource.live,
    )

    assert [alert.kind for alert in alerts] == [
        AlertKind.temp_high,
        AlertKind.humidity_high,
        AlertKind.temp_low,
    ]
    assert dashboard.state.counters.alert_passes == 1


def test_temperature_alert_clears_when_back_in_range() -> None:
    dashboard = _dashboard()

    dashboard.apply_readings([_reading(SensorGroup.milk, 25, 50)], ReadingSource.live)
    assert [a.kind for a in dashboard.state.active_alerts[SensorGroup.milk]] == [AlertKind.temp_high]

    dashboard.apply_readings([_reading(SensorGroup.milk, 5, 50)], ReadingSource.live)
    assert dashboard.state.active_alerts[SensorGroup.milk] == []
    assert dashboard.state.counters.alert_passes == 1


def test_empty_readings_change_nothing() -> None:
    dashboard = _dashboard()

    assert dashboard.apply_readings([], ReadingSource.live) == []
    assert dashboard.state.counters.data_points == 0


def test_chart_handle_is_released_before_replacement() -> None:
    renderer = RecordingRenderer()
    dashboard = _dashboard(renderer)

    dashboard.apply_chart(_chart(2))
    dashboard.apply_chart(_chart(3))

    assert renderer.events == [
        "create milk",
        "create vegetables",
        "release milk",
        "create milk",
        "release vegetables",
        "create vegetables",
    ]
    assert dashboard.chart_count == 2
    assert len(dashboard.state.chart.series[SensorGroup.milk]) == 3
    assert dashboard.state.summaries[SensorGroup.milk].max_temperature == 4.0


def test_release_charts_releases_every_handle() -> None:
    renderer = RecordingRenderer()
    dashboard = _dashboard(renderer)
    dashboard.apply_chart(_chart(1))

    dashboard.release_charts()

    assert all(chart.released for chart in renderer.charts)
    assert dashboard.chart_count == 0
    assert dashboard.state.chart is None


def test_status_counters_and_mode() -> None:
    dashboard = _dashboard()

    dashboard.set_status(Channel.live, True, "MQTT Connected")
    dashboard.count_message(Channel.live)
    dashboard.count_message(Channel.polled)
    dashboard.set_mode(MonitorMode.polled)

    assert dashboard.state.channels[Channel.live].ok is True
    assert dashboard.state.channels[Channel.live].text == "MQTT Connected"
    assert dashboard.state.counters.live_messages == 1
    assert dashboard.state.counters.polled_fetches == 1
    assert dashboard.state.mode is MonitorMode.polled
    assert dashboard.state.messages[0].text == "Protocol switched to: POLLED"


def test_message_log_is_bounded() -> None:
    dashboard = _dashboard()

    for index in range(MESSAGE_LOG_SIZE + 10):
        dashboard.log(f"message {index}")

    assert len(dashboard.state.messages) == MESSAGE_LOG_SIZE
    assert dashboard.state.messages[0].text == f"message {MESSAGE_LOG_SIZE + 9}"
