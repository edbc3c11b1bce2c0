from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

import typer

from models.readings import AlertEvent, AlertKind, CanonicalReading, GroupSummary, SensorGroup, SeriesPoint
from monitor.dashboard import Channel, ChannelState, LogEntry
from services.reconciler import ReconciliationResult

CHART_TAIL = 10

_ALERT_TEXT = {
    AlertKind.temp_high: "HIGH TEMP",
    AlertKind.temp_low: "LOW TEMP",
    AlertKind.humidity_high: "HIGH HUMIDITY",
}


def temperature_color(value: float) -> str:
    if value < 0:
        return typer.colors.BRIGHT_CYAN
    if value < 10:
        return typer.colors.BLUE
    if value < 15:
        return typer.colors.GREEN
    if value < 19:
        return typer.colors.YELLOW
    return typer.colors.RED


def humidity_color(value: float) -> str:
    if value < 30:
        return typer.colors.MAGENTA
    if value < 60:
        return typer.colors.GREEN
    if value < 80:
        return typer.colors.YELLOW
    return typer.colors.RED


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format(value: Optional[float], unit: str) -> str:
    return "--" if value is None else f"{value:.1f}{unit}"


def echo_reading(reading: CanonicalReading) -> None:
    typer.echo(f"[{reading.source.value}] {reading.sensor_group.value}: ", nl=False)
    typer.secho(f"{reading.temperature:.1f}°C", fg=temperature_color(reading.temperature), nl=False)
    typer.echo("  ", nl=False)
    typer.secho(f"{reading.humidity:.1f}%", fg=humidity_color(reading.humidity))


def echo_alert(alert: AlertEvent) -> None:
    unit = "°C" if alert.kind.is_temperature else "%"
    typer.secho(
        f"  ALERT {alert.sensor_group.value}: {_ALERT_TEXT[alert.kind]} "
        f"{alert.value:.1f}{unit} (limit {alert.limit:g}{unit})",
        fg=typer.colors.RED,
        bold=True,
    )


def echo_summary(summary: GroupSummary) -> None:
    echo_key_values(
        [
            ("temperature range", f"{_format(summary.min_temperature, '°C')} .. {_format(summary.max_temperature, '°C')}"),
            ("humidity range", f"{_format(summary.min_humidity, '%')} .. {_format(summary.max_humidity, '%')}"),
        ]
    )


def echo_series(points: Sequence[SeriesPoint], tail: int = CHART_TAIL) -> None:
    if not points:
        typer.echo("No points.")
        return
    if len(points) > tail:
        typer.echo(f"... {len(points) - tail} earlier points")
    for point in points[-tail:]:
        typer.echo(
            f"  {point.time_label:>14}  {_format(point.temperature, '°C'):>8}  {_format(point.humidity, '%'):>7}"
        )


class TerminalChart:
    """One group's chart as printed to the terminal; released when replaced."""

    def __init__(self, group: SensorGroup, points: Sequence[SeriesPoint], summary: GroupSummary) -> None:
        self.group = group
        self.points = list(points)
        self.summary = summary
        self.released = False

    def draw(self) -> None:
        echo_heading(f"{self.group.value.title()} history ({len(self.points)} points)")
        echo_series(self.points)
        echo_summary(self.summary)

    def release(self) -> None:
        self.released = True
        self.points = []


class TerminalRenderer:
    """Prints dashboard updates as they happen."""

    def __init__(self, show_debug_messages: bool = False) -> None:
        self.show_debug_messages = show_debug_messages
        self.charts: List[TerminalChart] = []

    def show_reading(self, reading: CanonicalReading) -> None:
        echo_reading(reading)

    def show_alerts(self, group: SensorGroup, alerts: Sequence[AlertEvent]) -> None:
        for alert in alerts:
            echo_alert(alert)

    def show_status(self, channel: Channel, state: ChannelState) -> None:
        color = typer.colors.GREEN if state.ok else typer.colors.YELLOW
        typer.secho(f"<{channel.value}> {state.text}", fg=color)

    def create_chart(
        self, group: SensorGroup, points: Sequence[SeriesPoint], summary: GroupSummary
    ) -> TerminalChart:
        self.charts = [chart for chart in self.charts if not chart.released]
        chart = TerminalChart(group, points, summary)
        chart.draw()
        self.charts.append(chart)
        return chart

    def show_message(self, entry: LogEntry) -> None:
        if entry.level == "error":
            typer.secho(f"{entry.at:%H:%M:%S} {entry.text}", fg=typer.colors.RED, err=True)
        elif self.show_debug_messages:
            typer.echo(f"{entry.at:%H:%M:%S} {entry.text}")


def render_snapshot(readings: Sequence[CanonicalReading], alerts: Sequence[AlertEvent]) -> None:
    echo_heading("Current Status")
    if not readings:
        typer.echo("No readings available.")
        return
    for reading in readings:
        echo_reading(reading)
    typer.echo()
    echo_heading("Alerts")
    if alerts:
        for alert in alerts:
            echo_alert(alert)
    else:
        typer.secho("All values within limits.", fg=typer.colors.GREEN)


def render_history(result: ReconciliationResult) -> None:
    echo_heading("History")
    echo_key_values([("source", result.source.value), ("row_count", result.row_count)])
    if result.row_count == 0:
        typer.echo("No history available yet.")
        return
    for group, points in result.series.items():
        typer.echo()
        TerminalChart(group, points, result.summaries.get(group, GroupSummary())).draw()
