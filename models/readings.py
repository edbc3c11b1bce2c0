"""Canonical reading, alert and series types shared by the monitor and the service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SensorGroup(str, Enum):
    """Monitored compartments. ``single`` is a stand-alone one-sensor unit."""

    milk = "milk"
    vegetables = "vegetables"
    single = "single"


DUAL_GROUPS = (SensorGroup.milk, SensorGroup.vegetables)


class SensorLayout(str, Enum):
    single = "single"
    dual = "dual"


class ReadingSource(str, Enum):
    live = "live"
    polled = "polled"


class MonitorMode(str, Enum):
    """Which transports are active. Exactly one mode is active at a time."""

    live = "live"
    polled = "polled"
    both = "both"

    @property
    def live_enabled(self) -> bool:
        return self in (MonitorMode.live, MonitorMode.both)

    @property
    def polled_enabled(self) -> bool:
        return self in (MonitorMode.polled, MonitorMode.both)


class AlertKind(str, Enum):
    temp_high = "temp_high"
    temp_low = "temp_low"
    humidity_high = "humidity_high"

    @property
    def is_temperature(self) -> bool:
        return self is not AlertKind.humidity_high


@dataclass(frozen=True, slots=True)
class Limits:
    temp_max: float = 20.0
    temp_min: float = 0.0
    humidity_max: float = 90.0


@dataclass(frozen=True, slots=True)
class CanonicalReading:
    """One validated temperature/humidity measurement for one sensor group."""

    sensor_group: SensorGroup
    temperature: float
    humidity: float
    source: ReadingSource
    observed_at: datetime


@dataclass(frozen=True, slots=True)
class AlertEvent:
    sensor_group: SensorGroup
    kind: AlertKind
    value: float
    limit: float


@dataclass(frozen=True, slots=True)
class SeriesPoint:
    time_label: str
    temperature: Optional[float]
    humidity: Optional[float]


@dataclass(slots=True)
class GroupSummary:
    """Running min/max per group. ``None`` until a numeric value is seen."""

    min_temperature: Optional[float] = None
    max_temperature: Optional[float] = None
    min_humidity: Optional[float] = None
    max_humidity: Optional[float] = None
