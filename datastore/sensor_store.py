"""Relational persistence for cold-storage readings.

Each compartment has its own table. Older deployments created those tables
without a ``server_timestamp`` column. The store inspects the schema once and,
when the column is missing, orders by id and reports a null time instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from itertools import zip_longest
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    inspect,
    literal_column,
    select,
)
from sqlalchemy.engine import Engine, make_url

from app.schemas import (
    CurrentStatus,
    HistoryRow,
    HourlyAggregateRow,
    RawReadingRow,
    ReadingValues,
)
from models.readings import CanonicalReading, SensorGroup
from models.records import StoredReading
from services.aggregator import HourlyAggregator
from settings import get_settings

logger = logging.getLogger(__name__)

TIME_COLUMN = "server_timestamp"
HOUR_FORMAT = "%Y-%m-%d %H:00:00"

LEGACY_HISTORY_LIMIT = 100
LEGACY_HISTORY_ALL_LIMIT = 200


metadata = MetaData()

storage_units = Table(
    "storage_units",
    metadata,
    Column("unit_id", Integer, primary_key=True, autoincrement=True),
    Column("unit_name", String(64), nullable=False, unique=True),
)


def _reading_table(name: str, id_column: str) -> Table:
    return Table(
        name,
        metadata,
        Column(id_column, Integer, primary_key=True, autoincrement=True),
        Column("unit_id", Integer, ForeignKey("storage_units.unit_id"), nullable=False),
        Column("temperature", Float, nullable=False),
        Column("humidity", Float, nullable=False),
        Column(
            "server_timestamp",
            DateTime,
            nullable=False,
            server_default=func.current_timestamp(),
            index=True,
        ),
    )


GROUP_TABLES: Dict[SensorGroup, Table] = {
    SensorGroup.milk: _reading_table("milk", "milk_id"),
    SensorGroup.vegetables: _reading_table("vegetables", "veg_id"),
    SensorGroup.single: _reading_table("single_sensor", "reading_id"),
}

UNIT_NAMES: Dict[SensorGroup, str] = {
    SensorGroup.milk: "Milk",
    SensorGroup.vegetables: "Vegetables",
    SensorGroup.single: "Single",
}


class StorageUnitMissing(LookupError):
    """A reading names a compartment with no ``storage_units`` row."""


def _utc_naive(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _id_column(table: Table):
    return next(iter(table.primary_key.columns))


def _hour_bucket(engine: Engine, column):
    """SQL expression truncating ``column`` to an ``HOUR_FORMAT`` label."""
    dialect = engine.dialect.name
    if dialect == "sqlite":
        return func.strftime(HOUR_FORMAT, column)
    if dialect == "postgresql":
        return func.to_char(func.date_trunc("hour", column), "YYYY-MM-DD HH24:00:00")
    return func.date_format(column, HOUR_FORMAT)


class SensorStore:

    def __init__(self, engine: Engine, aggregator: Optional[HourlyAggregator] = None) -> None:
        self.engine = engine
        self.aggregator = aggregator or HourlyAggregator()
        self._timed: Optional[bool] = None

    def ensure_schema(self) -> None:
        """Create missing tables and seed one storage unit per compartment."""
        metadata.create_all(self.engine)
        with self.engine.begin() as conn:
            existing = set(conn.execute(select(storage_units.c.unit_name)).scalars())
            for name in UNIT_NAMES.values():
                if name not in existing:
                    conn.execute(storage_units.insert().values(unit_name=name))
        self._timed = None

    def verify_schema(self) -> List[str]:
        """Return the names of required tables that do not exist."""
        present = set(inspect(self.engine).get_table_names())
        required = [storage_units.name] + [table.name for table in GROUP_TABLES.values()]
        return [name for name in required if name not in present]

    def dispose(self) -> None:
        self.engine.dispose()

    def has_timestamps(self) -> bool:
        """Whether every reading table carries ``server_timestamp``; inspected once."""
        if self._timed is None:
            inspector = inspect(self.engine)
            legacy = [
                table.name
                for table in GROUP_TABLES.values()
                if TIME_COLUMN not in {column["name"] for column in inspector.get_columns(table.name)}
            ]
            if legacy:
                logger.warning(
                    "server_timestamp missing, falling back to id ordering",
                    extra={"reason": ", ".join(legacy)},
                )
            self._timed = not legacy
        return self._timed

    def record(
        self,
        readings: Sequence[CanonicalReading],
        recorded_at: Optional[datetime] = None,
    ) -> int:
        """Insert one row per reading and return the number of rows written."""
        if not readings:
            return 0

        unit_ids = self._unit_ids({reading.sensor_group for reading in readings})
        moment = _utc_naive(recorded_at or datetime.now(timezone.utc))
        with_time = self.has_timestamps()

        with self.engine.begin() as conn:
            for reading in readings:
                values = {
                    "unit_id": unit_ids[reading.sensor_group],
                    "temperature": reading.temperature,
                    "humidity": reading.humidity,
                }
                if with_time:
                    values[TIME_COLUMN] = moment
                conn.execute(GROUP_TABLES[reading.sensor_group].insert().values(**values))
        return len(readings)

    def current_status(self, device_id: str) -> List[CurrentStatus]:
        """Latest reading as a zero- or one-element list."""
        with_time = self.has_timestamps()
        latest: Dict[SensorGroup, StoredReading] = {}
        for group in GROUP_TABLES:
            rows = self._fetch(group, with_time=with_time, newest_first=True, limit=1)
            if rows:
                latest[group] = rows[0]
        if not latest:
            return []

        milk = latest.get(SensorGroup.milk)
        vegetables = latest.get(SensorGroup.vegetables)
        if milk is not None or vegetables is not None:
            timestamp = next(
                (row.recorded_at for row in (milk, vegetables) if row is not None and row.recorded_at),
                None,
            )
            return [
                CurrentStatus(
                    device_id=device_id,
                    milk=_values(milk),
                    vegetables=_values(vegetables),
                    timestamp=timestamp,
                )
            ]

        single = latest[SensorGroup.single]
        return [
            CurrentStatus(
                device_id=device_id,
                temperature=single.temperature,
                humidity=single.humidity,
                timestamp=single.recorded_at,
            )
        ]

    def raw_rows(self) -> List[RawReadingRow]:
        """Every stored reading, ascending by time (legacy schema: by id, per group)."""
        with_time = self.has_timestamps()
        readings: List[StoredReading] = []
        for group in GROUP_TABLES:
            readings.extend(self._fetch(group, with_time=with_time))
        if with_time:
            readings.sort(key=lambda row: row.recorded_at or datetime.min)

        return [
            RawReadingRow(
                unit_type=row.sensor_group,
                unit_name=row.unit_name,
                temperature=row.temperature,
                humidity=row.humidity,
                time=row.recorded_at,
            )
            for row in readings
        ]

    def hourly_rows(self) -> List[HourlyAggregateRow]:
        """Hourly aggregates per compartment over the whole history."""
        rows: List[HourlyAggregateRow] = []
        if not self.has_timestamps():
            for group in GROUP_TABLES:
                recent = self._recent_untimed(group, LEGACY_HISTORY_ALL_LIMIT)
                rows.extend(_untimed_aggregate(row) for row in recent)
            return rows

        for group, table in GROUP_TABLES.items():
            rows.extend(self._hourly_aggregates(group, table))
        rows.sort(key=lambda row: (row.time or "", row.unit_type.value))
        return rows

    def history(self, hours: int) -> List[HistoryRow]:
        """Milk and vegetable hourly averages within the trailing window, merged by hour."""
        if self.has_timestamps():
            rows = self._timed_history(hours)
        else:
            # No timestamps to merge on: pair the most recent rows by position.
            milk = self._recent_untimed(SensorGroup.milk, LEGACY_HISTORY_LIMIT)
            vegetables = self._recent_untimed(SensorGroup.vegetables, LEGACY_HISTORY_LIMIT)
            rows = [
                HistoryRow(
                    milk_temperature=m.temperature if m else None,
                    milk_humidity=m.humidity if m else None,
                    veg_temperature=v.temperature if v else None,
                    veg_humidity=v.humidity if v else None,
                )
                for m, v in zip_longest(milk, vegetables)
            ]
        logger.info("History window served", extra={"hours": hours, "row_count": len(rows)})
        return rows

    def _timed_history(self, hours: int) -> List[HistoryRow]:
        since = _utc_naive(datetime.now(timezone.utc)) - timedelta(hours=hours)
        readings: List[StoredReading] = []
        for group in (SensorGroup.milk, SensorGroup.vegetables):
            readings.extend(self._fetch(group, with_time=True, since=since))

        merged: Dict[str, HistoryRow] = {}
        for bucket in self.aggregator.aggregate(readings):
            row = merged.setdefault(bucket.time_label, HistoryRow(time=bucket.time_label))
            if bucket.sensor_group is SensorGroup.milk:
                row.milk_temperature = bucket.avg_temp
                row.milk_humidity = bucket.avg_humidity
            else:
                row.veg_temperature = bucket.avg_temp
                row.veg_humidity = bucket.avg_humidity
        return sorted(merged.values(), key=lambda row: row.time or "")

    def _hourly_aggregates(self, group: SensorGroup, table: Table) -> List[HourlyAggregateRow]:
        bucket = _hour_bucket(self.engine, table.c[TIME_COLUMN]).label("bucket")
        stmt = (
            select(
                bucket,
                func.avg(table.c.temperature).label("avg_temp"),
                func.max(table.c.temperature).label("max_temp"),
                func.min(table.c.temperature).label("min_temp"),
                func.avg(table.c.humidity).label("avg_humidity"),
                func.max(table.c.humidity).label("max_humidity"),
                func.min(table.c.humidity).label("min_humidity"),
            )
            .group_by(literal_column("bucket"))
            .order_by(literal_column("bucket"))
        )
        with self.engine.connect() as conn:
            result = conn.execute(stmt).all()

        return [
            HourlyAggregateRow(
                time=row.bucket,
                unit_type=group,
                avg_temp=float(row.avg_temp),
                max_temp=float(row.max_temp),
                min_temp=float(row.min_temp),
                avg_humidity=float(row.avg_humidity),
                max_humidity=float(row.max_humidity),
                min_humidity=float(row.min_humidity),
            )
            for row in result
        ]

    def _recent_untimed(self, group: SensorGroup, limit: int) -> List[StoredReading]:
        """The newest ``limit`` rows by id, returned oldest first."""
        rows = self._fetch(group, with_time=False, newest_first=True, limit=limit)
        rows.reverse()
        return rows

    def _unit_ids(self, groups: Iterable[SensorGroup]) -> Dict[SensorGroup, int]:
        wanted = {UNIT_NAMES[group]: group for group in groups}
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(storage_units.c.unit_id, storage_units.c.unit_name).where(
                    storage_units.c.unit_name.in_(list(wanted))
                )
            ).all()
        found = {wanted[row.unit_name]: row.unit_id for row in rows}
        missing = sorted(UNIT_NAMES[group] for group in wanted.values() if group not in found)
        if missing:
            raise StorageUnitMissing(f"Storage units not found: {', '.join(missing)}")
        return found

    def _fetch(
        self,
        group: SensorGroup,
        *,
        with_time: bool,
        newest_first: bool = False,
        limit: Optional[int] = None,
        since: Optional[datetime] = None,
    ) -> List[StoredReading]:
        table = GROUP_TABLES[group]
        id_column = _id_column(table)
        columns = [table.c.temperature, table.c.humidity, storage_units.c.unit_name]
        if with_time:
            columns.append(table.c.server_timestamp)

        stmt = select(*columns).select_from(
            table.join(storage_units, table.c.unit_id == storage_units.c.unit_id)
        )
        if since is not None:
            stmt = stmt.where(table.c.server_timestamp >= since)
        order = [table.c.server_timestamp, id_column] if with_time else [id_column]
        stmt = stmt.order_by(*(column.desc() if newest_first else column.asc() for column in order))
        if limit is not None:
            stmt = stmt.limit(limit)

        with self.engine.connect() as conn:
            result = conn.execute(stmt).all()

        return [
            StoredReading(
                sensor_group=group,
                unit_name=row.unit_name,
                temperature=float(row.temperature),
                humidity=float(row.humidity),
                recorded_at=row.server_timestamp if with_time else None,
            )
            for row in result
        ]


def _values(row: Optional[StoredReading]) -> Optional[ReadingValues]:
    if row is None:
        return None
    return ReadingValues(temperature=row.temperature, humidity=row.humidity)


def _untimed_aggregate(row: StoredReading) -> HourlyAggregateRow:
    return HourlyAggregateRow(
        time=None,
        unit_type=row.sensor_group,
        avg_temp=row.temperature,
        max_temp=row.temperature,
        min_temp=row.temperature,
        avg_humidity=row.humidity,
        max_humidity=row.humidity,
        min_humidity=row.humidity,
    )


def create_store_engine(url: str) -> Engine:
    parsed = make_url(url)
    connect_args: Dict[str, object] = {}
    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


@lru_cache
def build_default_store(url: Optional[str] = None) -> SensorStore:
    settings = get_settings()
    database_url = settings.database_url if url is None else url
    return SensorStore(create_store_engine(database_url))
