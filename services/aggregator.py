"""Hourly aggregation of stored sensor readings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from models.readings import SensorGroup
from models.records import HourlyBucket, StoredReading


@dataclass
class _Accumulator:
    count: int = 0
    temp_total: float = 0.0
    humidity_total: float = 0.0
    temps: List[float] = field(default_factory=list)
    humidities: List[float] = field(default_factory=list)

    def add(self, reading: StoredReading) -> None:
        self.count += 1
        self.temp_total += reading.temperature
        self.humidity_total += reading.humidity
        self.temps.append(reading.temperature)
        self.humidities.append(reading.humidity)


class HourlyAggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, readings: Iterable[StoredReading]) -> List[HourlyBucket]:
        buckets: Dict[Tuple[SensorGroup, datetime], _Accumulator] = {}

        for reading in readings:
            if reading.recorded_at is None:
                continue
            hour = reading.recorded_at.replace(minute=0, second=0, microsecond=0)
            key = (reading.sensor_group, hour)
            accumulator = buckets.get(key)
            if accumulator is None:
                accumulator = buckets[key] = _Accumulator()
            accumulator.add(reading)

        results = [
            HourlyBucket(
                sensor_group=group,
                hour=hour,
                count=acc.count,
                avg_temp=acc.temp_total / acc.count,
                max_temp=max(acc.temps),
                min_temp=min(acc.temps),
                avg_humidity=acc.humidity_total / acc.count,
                max_humidity=max(acc.humidities),
                min_humidity=min(acc.humidities),
            )
            for (group, hour), acc in buckets.items()
        ]
        results.sort(key=lambda bucket: (bucket.hour.replace(tzinfo=None), bucket.sensor_group.value))
        return results
