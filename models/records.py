"""Persistence-side models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.readings import SensorGroup


@dataclass(slots=True)
class StoredReading:
    """A single row read back from one of the per-group tables."""

    sensor_group: SensorGroup
    unit_name: str
    temperature: float
    humidity: float
    recorded_at: Optional[datetime]


@dataclass(slots=True)
class HourlyBucket:
    """Aggregate statistics for one group over one wall-clock hour."""

    sensor_group: SensorGroup
    hour: datetime
    count: int
    avg_temp: float
    max_temp: float
    min_temp: float
    avg_humidity: float
    max_humidity: float
    min_humidity: float

    @property
    def time_label(self) -> str:
        return self.hour.strftime("%Y-%m-%d %H:00:00")
