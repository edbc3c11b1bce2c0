"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from app.schemas import (
    CurrentStatus,
    ErrorResponse,
    HistoryRow,
    HourlyAggregateRow,
    IngestResponse,
    RawReadingRow,
    ReceivedValues,
    SensorDataIn,
)
from datastore.sensor_store import SensorStore, StorageUnitMissing, build_default_store
from models.readings import ReadingSource
from services.normalizer import ReadingNormalizer, detect_layout

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_ID = "ESP32"

router = APIRouter(prefix="/api")
health_router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_store() -> SensorStore:
    return build_default_store()


def get_normalizer() -> ReadingNormalizer:
    return ReadingNormalizer()


@router.post(
    "/sensor-data",
    response_model=IngestResponse,
    responses=_ERROR_RESPONSES,
    summary="Store a dual-sensor or single-sensor reading.",
)
def receive_sensor_data(
    payload: SensorDataIn,
    store: SensorStore = Depends(get_store),
    normalizer: ReadingNormalizer = Depends(get_normalizer),
) -> IngestResponse:
    body = payload.model_dump(exclude_none=True, exclude={"timestamp", "device_id"})
    observed_at = payload.timestamp or datetime.now(timezone.utc)
    readings = normalizer.normalize(body, detect_layout(body), ReadingSource.polled, observed_at)

    if not readings:
        logger.warning(
            "Rejected sensor payload without usable readings",
            extra={"device_id": payload.device_id, "reason": "no numeric temperature/humidity"},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payload contains no reading with numeric temperature and humidity.",
        )

    try:
        stored = store.record(readings, recorded_at=payload.timestamp)
    except StorageUnitMissing as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    logger.info(
        "Stored sensor readings",
        extra={"device_id": payload.device_id, "row_count": stored},
    )
    return IngestResponse(
        device_id=payload.device_id,
        data_received={
            reading.sensor_group.value: ReceivedValues(temp=reading.temperature, hum=reading.humidity)
            for reading in readings
        },
        stored=stored,
    )


@router.get(
    "/current-status",
    response_model=List[CurrentStatus],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Latest stored reading; empty list when nothing is stored yet.",
)
def current_status(store: SensorStore = Depends(get_store)) -> List[CurrentStatus]:
    return store.current_status(DEFAULT_DEVICE_ID)


@router.get(
    "/raw-data",
    response_model=List[RawReadingRow],
    responses=_ERROR_RESPONSES,
    summary="Every individual reading, tagged with its compartment.",
)
def raw_data(store: SensorStore = Depends(get_store)) -> List[RawReadingRow]:
    rows = store.raw_rows()
    logger.info("Raw data served", extra={"row_count": len(rows)})
    return rows


@router.get(
    "/history-all",
    response_model=List[HourlyAggregateRow],
    responses=_ERROR_RESPONSES,
    summary="Hourly aggregates per compartment over the full history.",
)
def history_all(store: SensorStore = Depends(get_store)) -> List[HourlyAggregateRow]:
    rows = store.hourly_rows()
    logger.info("Hourly history served", extra={"row_count": len(rows)})
    return rows


@router.get(
    "/history/{hours}",
    response_model=List[HistoryRow],
    responses=_ERROR_RESPONSES,
    summary="Hourly milk and vegetable averages within the trailing window.",
)
def history(
    hours: int = Path(..., ge=1, description="Window length in hours."),
    store: SensorStore = Depends(get_store),
) -> List[HistoryRow]:
    return store.history(hours)


@health_router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@health_router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
