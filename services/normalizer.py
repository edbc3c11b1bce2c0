"""Conversion of heterogeneous sensor payloads into canonical readings."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from models.readings import (
    DUAL_GROUPS,
    CanonicalReading,
    ReadingSource,
    SensorGroup,
    SensorLayout,
)

logger = logging.getLogger(__name__)

TEMPERATURE_FIELDS: Tuple[str, ...] = ("temperature", "avg_temp")
HUMIDITY_FIELDS: Tuple[str, ...] = ("humidity", "avg_humidity")

# Prefixes used by flattened rows, e.g. ``milk_temperature`` or ``veg_temp``.
GROUP_PREFIXES: Mapping[SensorGroup, Tuple[str, ...]] = {
    SensorGroup.milk: ("milk",),
    SensorGroup.vegetables: ("veg", "vegetables"),
    SensorGroup.single: (),
}


def prefixed_temperature_fields(group: SensorGroup) -> Tuple[str, ...]:
    names: list[str] = []
    for prefix in GROUP_PREFIXES[group]:
        names.extend((f"{prefix}_temperature", f"{prefix}_temp"))
    return tuple(names)


def prefixed_humidity_fields(group: SensorGroup) -> Tuple[str, ...]:
    names: list[str] = []
    for prefix in GROUP_PREFIXES[group]:
        names.extend((f"{prefix}_humidity", f"{prefix}_hum"))
    return tuple(names)


def temperature_chain(group: SensorGroup, prefixed_first: bool = False) -> Tuple[str, ...]:
    """Ordered candidate field names for a group's temperature."""
    prefixed = prefixed_temperature_fields(group)
    if prefixed_first:
        return prefixed + TEMPERATURE_FIELDS
    return TEMPERATURE_FIELDS + prefixed


def humidity_chain(group: SensorGroup, prefixed_first: bool = False) -> Tuple[str, ...]:
    """Ordered candidate field names for a group's humidity."""
    prefixed = prefixed_humidity_fields(group)
    if prefixed_first:
        return prefixed + HUMIDITY_FIELDS
    return HUMIDITY_FIELDS + prefixed


def parse_number(value: Any) -> Optional[float]:
    """Parse a finite float from a number or numeric string, else ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = float(candidate)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def resolve_field(sources: Iterable[Mapping[str, Any]], chain: Sequence[str]) -> Any:
    """Return the first non-null value found walking ``chain`` over ``sources``."""
    for source in sources:
        for name in chain:
            value = source.get(name)
            if value is not None:
                return value
    return None


def _has_sections(payload: Mapping[str, Any]) -> bool:
    return any(isinstance(payload.get(group.value), Mapping) for group in DUAL_GROUPS)


def detect_layout(payload: Mapping[str, Any]) -> SensorLayout:
    """Dual when the payload nests at least one compartment section."""
    return SensorLayout.dual if _has_sections(payload) else SensorLayout.single


class ReadingNormalizer:
    """Pure normalization component that can be unit tested in isolation."""

    def normalize(
        self,
        payload: Mapping[str, Any],
        layout: SensorLayout,
        source: ReadingSource,
        observed_at: datetime,
    ) -> List[CanonicalReading]:
        if not isinstance(payload, Mapping):
            logger.debug("Ignoring non-object payload", extra={"source": source.value})
            return []

        groups = DUAL_GROUPS if layout is SensorLayout.dual else (SensorGroup.single,)
        # A payload with any compartment section never falls back to its top-level fields.
        sectioned = layout is SensorLayout.dual and _has_sections(payload)
        readings: List[CanonicalReading] = []
        for group in groups:
            reading = self._normalize_group(payload, group, source, observed_at, sectioned)
            if reading is not None:
                readings.append(reading)
        return readings

    def _normalize_group(
        self,
        payload: Mapping[str, Any],
        group: SensorGroup,
        source: ReadingSource,
        observed_at: datetime,
        sectioned: bool = False,
    ) -> Optional[CanonicalReading]:
        sources: list[Mapping[str, Any]] = []
        section = payload.get(group.value)
        if isinstance(section, Mapping):
            sources.append(section)
        if not sectioned:
            sources.append(payload)

        temperature = parse_number(resolve_field(sources, temperature_chain(group)))
        humidity = parse_number(resolve_field(sources, humidity_chain(group)))

        if temperature is None or humidity is None:
            logger.debug(
                "Dropping incomplete reading",
                extra={
                    "sensor_group": group.value,
                    "source": source.value,
                    "reason": "missing temperature" if temperature is None else "missing humidity",
                },
            )
            return None

        return CanonicalReading(
            sensor_group=group,
            temperature=temperature,
            humidity=humidity,
            source=source,
            observed_at=observed_at,
        )
