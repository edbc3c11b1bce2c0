"""Threshold checks for canonical readings."""

from __future__ import annotations

from typing import Iterable, List

from models.readings import AlertEvent, AlertKind, CanonicalReading, Limits, SensorGroup

_GROUP_ORDER = {
    SensorGroup.milk: 0,
    SensorGroup.vegetables: 1,
    SensorGroup.single: 2,
}


class ThresholdEvaluator:
    """Applies fixed limits to readings. Holds no state between calls."""

    def __init__(self, limits: Limits) -> None:
        self.limits = limits

    def evaluate(self, reading: CanonicalReading) -> List[AlertEvent]:
        limits = self.limits
        events: List[AlertEvent] = []

        if reading.temperature > limits.temp_max:
            events.append(
                AlertEvent(reading.sensor_group, AlertKind.temp_high, reading.temperature, limits.temp_max)
            )
        elif reading.temperature < limits.temp_min:
            events.append(
                AlertEvent(reading.sensor_group, AlertKind.temp_low, reading.temperature, limits.temp_min)
            )

        if reading.humidity > limits.humidity_max:
            events.append(
                AlertEvent(
                    reading.sensor_group,
                    AlertKind.humidity_high,
                    reading.humidity,
                    limits.humidity_max,
                )
            )

        return events

    def evaluate_all(self, readings: Iterable[CanonicalReading]) -> List[AlertEvent]:
        """Evaluate several groups in one pass, milk first, then vegetables."""
        ordered = sorted(readings, key=lambda reading: _GROUP_ORDER[reading.sensor_group])
        events: List[AlertEvent] = []
        for reading in ordered:
            events.extend(self.evaluate(reading))
        return events
