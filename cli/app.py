from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient, ApiError
from cli.config import CLIConfig, load_config
from cli.render import TerminalRenderer, echo_heading, echo_key_values, render_history, render_snapshot
from logging_config import configure_logging
from models.readings import MonitorMode, ReadingSource, SensorLayout
from monitor.service import build_monitor
from services.normalizer import ReadingNormalizer
from services.reconciler import Reconciler, parse_timestamp
from services.thresholds import ThresholdEvaluator
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig


app = typer.Typer(
    help="Cold-storage monitoring client: live dashboard, status checks and a device simulator.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _run(coroutine: Any) -> Any:
    try:
        return asyncio.run(coroutine)
    except ApiError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Gateway API base URL (defaults to API_BASE_URL env or http://localhost:8000/api).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    ctx.obj = CLIState(config=load_config(base_url=base_url, request_timeout=timeout))


@app.command("monitor")
def monitor_command(
    ctx: typer.Context,
    mode: Optional[MonitorMode] = typer.Option(
        None, "--mode", "-m", help="Channels to run (defaults to MONITOR_MODE env or both)."
    ),
    layout: Optional[SensorLayout] = typer.Option(
        None, "--layout", help="Sensor layout of incoming payloads."
    ),
    duration: Optional[float] = typer.Option(
        None, "--duration", min=0, help="Stop after this many seconds instead of running until interrupted."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every dashboard message."),
    log_file: Optional[str] = typer.Option(
        None, "--log-file", help="Write service logs to this file instead of stderr."
    ),
) -> None:
    """Run the live dashboard in the terminal."""
    state = _get_state(ctx)
    settings = get_settings()
    configure_logging(settings.log_level, filename=log_file)
    config = state.config.with_overrides(mode=mode, layout=layout)
    typer.echo(f"Monitoring in {config.mode.value} mode (Ctrl+C to stop) ...")

    async def run() -> None:
        async with ApiClient(config) as client:
            service = build_monitor(
                config,
                client,
                renderer=TerminalRenderer(show_debug_messages=verbose),
                limits=settings.limits,
            )
            await service.run(duration)

    try:
        _run(run())
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@app.command("status")
def status_command(
    ctx: typer.Context,
    layout: Optional[SensorLayout] = typer.Option(
        None, "--layout", help="Sensor layout of the stored readings."
    ),
) -> None:
    """Fetch the current status once and evaluate it against the thresholds."""
    state = _get_state(ctx)
    config = state.config.with_overrides(layout=layout)

    async def fetch():
        async with ApiClient(config) as client:
            return await client.current_status()

    rows = _run(fetch())
    if not rows:
        render_snapshot([], [])
        return

    row = rows[0]
    observed_at = parse_timestamp(row.get("timestamp")) or datetime.now(timezone.utc)
    readings = ReadingNormalizer().normalize(row, config.layout, ReadingSource.polled, observed_at)
    alerts = ThresholdEvaluator(get_settings().limits).evaluate_all(readings)
    render_snapshot(readings, alerts)
    if row.get("timestamp"):
        typer.echo(f"timestamp: {row['timestamp']}")


@app.command("history")
def history_command(ctx: typer.Context) -> None:
    """Reconcile stored history into per-group series and print them."""
    state = _get_state(ctx)

    async def reconcile():
        async with ApiClient(state.config) as client:
            return await Reconciler().reconcile(client.history_all, client.raw_data)

    render_history(_run(reconcile()))


@app.command("send")
def send_command(
    ctx: typer.Context,
    milk_temp: Optional[float] = typer.Option(None, "--milk-temp", help="Milk compartment temperature."),
    milk_humidity: Optional[float] = typer.Option(None, "--milk-humidity", help="Milk compartment humidity."),
    veg_temp: Optional[float] = typer.Option(None, "--veg-temp", help="Vegetable compartment temperature."),
    veg_humidity: Optional[float] = typer.Option(None, "--veg-humidity", help="Vegetable compartment humidity."),
    temperature: Optional[float] = typer.Option(None, "--temperature", help="Single-sensor temperature."),
    humidity: Optional[float] = typer.Option(None, "--humidity", help="Single-sensor humidity."),
    device_id: str = typer.Option("ESP32", "--device-id", help="Device identifier sent with the reading."),
) -> None:
    """Post one reading to the gateway, as a device would."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {"device_id": device_id}
    if milk_temp is not None or milk_humidity is not None:
        payload["milk"] = {"temperature": milk_temp, "humidity": milk_humidity}
    if veg_temp is not None or veg_humidity is not None:
        payload["vegetables"] = {"temperature": veg_temp, "humidity": veg_humidity}
    if temperature is not None or humidity is not None:
        payload["temperature"] = temperature
        payload["humidity"] = humidity
    if len(payload) == 1:
        typer.secho("Provide at least one temperature/humidity pair.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    async def send():
        async with ApiClient(state.config) as client:
            return await client.send_reading(payload)

    response = _run(send())
    typer.secho(f"Reading stored for {response.get('device_id', device_id)}.", fg=typer.colors.GREEN)
    echo_heading("Data received")
    echo_key_values(
        (group, f"{values.get('temp')}°C / {values.get('hum')}%")
        for group, values in (response.get("data_received") or {}).items()
    )
