"""Sync trigger, last-result and read-only data routes."""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from attendance_sync.api.deps import get_ready_service, get_service
from attendance_sync.models.sync import QueryFilters
from attendance_sync.sync.service import AttendanceSyncService

router = APIRouter()


class SyncRangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes from clients are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.post("/sync")
async def trigger_sync(service: AttendanceSyncService = Depends(get_ready_service)):
    """Run one auto sync now (same window and guard as the scheduled job)."""
    return await service.run_auto_sync()


@router.post("/sync/range")
async def trigger_range_sync(
    request: SyncRangeRequest,
    service: AttendanceSyncService = Depends(get_ready_service),
):
    """Sync an explicit window. Leaves the auto-sync watermark alone."""
    start = _as_utc(request.start_date)
    end = _as_utc(request.end_date)
    if start >= end:
        raise HTTPException(status_code=400, detail="startDate must be before endDate")
    return await service.run_manual_sync(start, end)


@router.get("/sync/last")
def last_sync(service: AttendanceSyncService = Depends(get_service)):
    return {"success": True, "last_sync_result": service.get_last_result()}


@router.get("/data")
async def query_data(
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    criteria: str = "sync_time",
    service: AttendanceSyncService = Depends(get_ready_service),
):
    """Fetch and normalize records without writing them anywhere."""
    defaults = service.orchestrator.default_filters()
    filters = QueryFilters(
        start_time=_as_utc(start_time) if start_time else defaults.start_time,
        end_time=_as_utc(end_time) if end_time else defaults.end_time,
        criteria=criteria,
    )
    if filters.start_time >= filters.end_time:
        raise HTTPException(status_code=400, detail="start_time must be before end_time")
    return await service.query_records(filters)
