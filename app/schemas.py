"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from models.readings import SensorGroup


class ReadingValuesIn(BaseModel):
    """Raw values for one compartment. Strings are accepted and parsed later."""

    temperature: Any = None
    humidity: Any = None


class SensorDataIn(BaseModel):
    """Body of ``POST /sensor-data``. Dual-sensor and single-sensor shapes share it."""

    device_id: str = Field(default="ESP32", min_length=1)
    milk: Optional[ReadingValuesIn] = None
    vegetables: Optional[ReadingValuesIn] = None
    temperature: Any = None
    humidity: Any = None
    timestamp: Optional[datetime] = Field(
        default=None, description="Device-side observation time; server time when absent."
    )


class ReceivedValues(BaseModel):
    temp: float
    hum: float


class IngestResponse(BaseModel):
    status: Literal["success"] = "success"
    device_id: str
    data_received: Dict[str, ReceivedValues] = Field(default_factory=dict)
    stored: int = Field(..., ge=0)


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str


class ReadingValues(BaseModel):
    temperature: float
    humidity: float


class CurrentStatus(BaseModel):
    """Latest stored reading, dual-sensor or single-sensor shaped."""

    device_id: str
    milk: Optional[ReadingValues] = None
    vegetables: Optional[ReadingValues] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    timestamp: Optional[datetime] = None


class RawReadingRow(BaseModel):
    unit_type: SensorGroup
    unit_name: str
    temperature: float
    humidity: float
    time: Optional[datetime] = None


class HourlyAggregateRow(BaseModel):
    time: Optional[str] = None
    unit_type: SensorGroup
    avg_temp: float
    max_temp: float
    min_temp: float
    avg_humidity: float
    max_humidity: float
    min_humidity: float


class HistoryRow(BaseModel):
    """Milk and vegetable hourly averages merged on a shared time key."""

    time: Optional[str] = None
    milk_temperature: Optional[float] = None
    milk_humidity: Optional[float] = None
    veg_temperature: Optional[float] = None
    veg_humidity: Optional[float] = None
