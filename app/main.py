from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import health_router, router
from app.schemas import ErrorResponse
from datastore.sensor_store import build_default_store
from logging_config import configure_logging
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    store = build_default_store()
    try:
        if get_settings().create_schema:
            store.ensure_schema()
        else:
            missing = store.verify_schema()
            if missing:
                logger.error(
                    "Missing required tables",
                    extra={"reason": ", ".join(missing)},
                )
    except SQLAlchemyError as exc:
        # The service still starts; affected endpoints report storage errors.
        logger.error("Schema preparation failed", extra={"reason": str(exc)})
    try:
        yield
    finally:
        store.dispose()
        build_default_store.cache_clear()


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


async def _http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, problems or "Invalid request.")


async def _storage_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Storage query failed", extra={"reason": str(exc)})
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage query failed.")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Cold Storage Monitor",
        description="Ingestion and query service for cold-storage temperature and humidity readings.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _storage_error_handler)
    app.include_router(router)
    app.include_router(health_router)
    return app

app = create_app()
