"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response

from app.schemas import (
    ExportNotice,
    HistoryEntry,
    ReadingPayload,
    SaveResponse,
    SyncRequest,
    SyncResult,
)
from datastore.history_store import history_path, validate_path
from services.exporter import CsvExporter, build_default_exporter
from services.query import HistoryQueryEngine, build_default_query_engine
from services.sync import HistorySyncEngine, build_default_sync_engine

router = APIRouter()


def get_sync_engine() -> HistorySyncEngine:
    return build_default_sync_engine()


def get_query_engine() -> HistoryQueryEngine:
    return build_default_query_engine()


def get_exporter() -> CsvExporter:
    return build_default_exporter()


def _check_device(device_type: str, device_id: str) -> None:
    try:
        validate_path(history_path(device_type, device_id))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post(
    "/history/{device_type}/{device_id}/sync",
    response_model=SyncResult,
    summary="Sync a batch of raw device readings into history.",
)
def sync_readings(
    device_type: str,
    device_id: str,
    request: SyncRequest,
    engine: HistorySyncEngine = Depends(get_sync_engine),
) -> SyncResult:
    _check_device(device_type, device_id)
    readings = [payload.to_reading() for payload in request.readings]
    tank = request.tank.to_tank() if request.tank is not None else None
    return engine.sync(device_id, device_type, readings, tank=tank)


@router.post(
    "/history/{device_type}/{device_id}/readings",
    response_model=SaveResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a single reading keyed by its timestamp.",
)
async def save_reading(
    device_type: str,
    device_id: str,
    payload: ReadingPayload,
    response: Response,
    engine: HistorySyncEngine = Depends(get_sync_engine),
) -> SaveResponse:
    _check_device(device_type, device_id)
    saved = engine.save_reading(device_id, device_type, payload.to_reading())
    if not saved:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return SaveResponse(saved=saved)


@router.get(
    "/history/{device_type}/{device_id}",
    response_model=List[HistoryEntry],
    summary="History for a device, newest first, optionally limited to a date range.",
)
async def get_history(
    device_type: str,
    device_id: str,
    start_date: Optional[date] = Query(None, description="Inclusive local start date."),
    end_date: Optional[date] = Query(None, description="Inclusive local end date."),
    engine: HistoryQueryEngine = Depends(get_query_engine),
) -> List[HistoryEntry]:
    _check_device(device_type, device_id)
    return engine.query(device_id, device_type, start_date=start_date, end_date=end_date)


@router.get(
    "/history/{device_type}/{device_id}/raw",
    summary="Stored history records exactly as persisted.",
)
async def get_raw_history(
    device_type: str,
    device_id: str,
    engine: HistoryQueryEngine = Depends(get_query_engine),
) -> List[Dict[str, Any]]:
    _check_device(device_type, device_id)
    return engine.fetch_raw(device_id, device_type)


@router.get(
    "/history/{device_type}/{device_id}/export",
    response_model=None,
    summary="Download history as CSV.",
)
async def export_history(
    device_type: str,
    device_id: str,
    device_name: Optional[str] = Query(None, description="Name used for the download file."),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    engine: HistoryQueryEngine = Depends(get_query_engine),
    exporter: CsvExporter = Depends(get_exporter),
) -> Response:
    _check_device(device_type, device_id)
    entries = engine.query(device_id, device_type, start_date=start_date, end_date=end_date)
    exported = exporter.export(entries, device_name or device_id, device_type)
    if exported is None:
        return JSONResponse(ExportNotice().model_dump())
    return Response(
        content=exported.data,
        media_type=exported.content_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
