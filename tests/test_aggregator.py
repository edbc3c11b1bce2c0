"""Unit tests for the hourly aggregation logic."""

from __future__ import annotations

from datetime import datetime

from models.readings import SensorGroup
from models.records import StoredReading
from services.aggregator import HourlyAggregator


def _reading(group: SensorGroup, temperature: float, humidity: float, at: datetime | None) -> StoredReading:
    """Helper to build deterministic stored readings."""

    return StoredReading(
        sensor_group=group,
        unit_name=group.value.title(),
        temperature=temperature,
        humidity=humidity,
        recorded_at=at,
    )


def test_aggregate_empty_iterable_returns_no_buckets() -> None:
    assert HourlyAggregator().aggregate([]) == []


def test_aggregate_groups_by_compartment_and_hour() -> None:
    readings = [
        _reading(SensorGroup.milk, 2.0, 60.0, datetime(2024, 1, 1, 10, 5)),
        _reading(SensorGroup.milk, 4.0, 70.0, datetime(2024, 1, 1, 10, 55)),
        _reading(SensorGroup.vegetables, 9.0, 85.0, datetime(2024, 1, 1, 10, 30)),
        _reading(SensorGroup.milk, 6.0, 65.0, datetime(2024, 1, 1, 11, 0)),
    ]

    buckets = HourlyAggregator().aggregate(readings)

    assert [(b.sensor_group, b.time_label) for b in buckets] == [
        (SensorGroup.milk, "2024-01-01 10:00:00"),
        (SensorGroup.vegetables, "2024-01-01 10:00:00"),
        (SensorGroup.milk, "2024-01-01 11:00:00"),
    ]
    first = buckets[0]
    assert first.count == 2
    assert first.avg_temp == 3.0
    assert (first.min_temp, first.max_temp) == (2.0, 4.0)
    assert first.avg_humidity == 65.0
    assert (first.min_humidity, first.max_humidity) == (60.0, 70.0)


def test_readings_without_time_are_skipped() -> None:
    buckets = HourlyAggregator().aggregate(
        [
            _reading(SensorGroup.milk, 1.0, 50.0, None),
            _reading(SensorGroup.milk, 3.0, 55.0, datetime(2024, 1, 1, 9, 10)),
        ]
    )

    assert len(buckets) == 1
    assert buckets[0].count == 1
