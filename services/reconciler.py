"""Alignment of independently fetched milk/vegetable series for charting."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from models.readings import DUAL_GROUPS, GroupSummary, SensorGroup, SeriesPoint
from services.normalizer import humidity_chain, parse_number, resolve_field, temperature_chain

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
RowSource = Callable[[], Awaitable[Sequence[Row]]]

DISCRIMINATOR_FIELDS: Tuple[str, ...] = ("unit_type", "unit", "sensor_group")
TIME_FIELDS: Tuple[str, ...] = ("time", "timestamp", "server_timestamp")
TIME_LABEL_FORMAT = "%d %b %H:%M"


class SeriesSource(str, Enum):
    aggregated = "aggregated"
    raw = "raw"


@dataclass
class ReconciliationResult:
    source: SeriesSource
    row_count: int
    series: Dict[SensorGroup, List[SeriesPoint]] = field(default_factory=dict)
    summaries: Dict[SensorGroup, GroupSummary] = field(default_factory=dict)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if not candidate:
        return None
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _sort_key(moment: datetime) -> datetime:
    # Naive and aware values cannot be compared; drop tzinfo for ordering only.
    return moment.replace(tzinfo=None)


class Reconciler:
    """Builds one independently ordered series per group plus running summaries.

    Rows are classified by an explicit discriminator. Rows without one are
    ambiguous and are added to every group's series; rows tagged with a group
    that is not charted are left out.
    """

    def __init__(self, groups: Sequence[SensorGroup] = DUAL_GROUPS) -> None:
        self.groups = tuple(groups)
        self._summaries: Dict[SensorGroup, GroupSummary] = {
            group: GroupSummary() for group in self.groups
        }

    @property
    def summaries(self) -> Dict[SensorGroup, GroupSummary]:
        return {group: self._copy_summary(summary) for group, summary in self._summaries.items()}

    async def reconcile(self, aggregated: RowSource, raw: RowSource) -> ReconciliationResult:
        """Prefer the aggregated source, falling back to raw rows once per call."""
        rows: Sequence[Row] = ()
        source = SeriesSource.aggregated
        try:
            rows = await aggregated()
        except Exception as exc:  # noqa: BLE001 - any failure selects the fallback
            logger.warning(
                "Aggregated history unavailable, using raw readings",
                extra={"reason": str(exc)},
            )
            rows = ()

        if not rows:
            source = SeriesSource.raw
            rows = await raw() or ()

        return self.reconcile_rows(rows, source)

    def reconcile_rows(self, rows: Sequence[Row], source: SeriesSource) -> ReconciliationResult:
        series: Dict[SensorGroup, List[SeriesPoint]] = {group: [] for group in self.groups}
        moments: Dict[SensorGroup, List[Optional[datetime]]] = {group: [] for group in self.groups}

        for index, row in enumerate(rows, start=1):
            label, moment = self._time_label(row, index)
            for group in self._groups_for(row):
                temperature = parse_number(
                    resolve_field((row,), temperature_chain(group, prefixed_first=True))
                )
                humidity = parse_number(
                    resolve_field((row,), humidity_chain(group, prefixed_first=True))
                )
                series[group].append(SeriesPoint(label, temperature, humidity))
                moments[group].append(moment)

        for group in self.groups:
            group_moments = moments[group]
            if group_moments and all(moment is not None for moment in group_moments):
                ordered = sorted(
                    zip(group_moments, series[group]),
                    key=lambda pair: _sort_key(pair[0]),
                )
                series[group] = [point for _, point in ordered]
            self._update_summary(group, series[group])

        logger.debug(
            "Reconciled history",
            extra={"source": source.value, "row_count": len(rows)},
        )
        return ReconciliationResult(
            source=source,
            row_count=len(rows),
            series=series,
            summaries=self.summaries,
        )

    def _groups_for(self, row: Row) -> Tuple[SensorGroup, ...]:
        raw_value = resolve_field((row,), DISCRIMINATOR_FIELDS)
        if raw_value is None:
            return self.groups
        name = str(raw_value).strip().lower()
        for group in self.groups:
            if name == group.value:
                return (group,)
        return ()

    @staticmethod
    def _time_label(row: Row, index: int) -> Tuple[str, Optional[datetime]]:
        value = resolve_field((row,), TIME_FIELDS)
        if value is None or (isinstance(value, str) and not value.strip()):
            return f"Reading {index}", None
        moment = parse_timestamp(value)
        if moment is None:
            return str(value), None
        return moment.strftime(TIME_LABEL_FORMAT), moment

    def _update_summary(self, group: SensorGroup, points: Sequence[SeriesPoint]) -> None:
        summary = self._summaries[group]
        temperatures = [point.temperature for point in points if point.temperature is not None]
        humidities = [point.humidity for point in points if point.humidity is not None]
        if temperatures:
            summary.min_temperature = min(temperatures)
            summary.max_temperature = max(temperatures)
        if humidities:
            summary.min_humidity = min(humidities)
            summary.max_humidity = max(humidities)

    @staticmethod
    def _copy_summary(summary: GroupSummary) -> GroupSummary:
        return GroupSummary(
            min_temperature=summary.min_temperature,
            max_temperature=summary.max_temperature,
            min_humidity=summary.min_humidity,
            max_humidity=summary.max_humidity,
        )
