"""Recurring-sync (cron) control routes."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from attendance_sync.api.deps import get_ready_service, get_service
from attendance_sync.sync.service import AttendanceSyncService

router = APIRouter()


class StartScheduleRequest(BaseModel):
    cadence: Optional[str] = None  # If None, uses SYNC_INTERVAL


@router.post("/start")
async def start_schedule(
    request: Optional[StartScheduleRequest] = None,
    service: AttendanceSyncService = Depends(get_ready_service),
):
    cadence = request.cadence if request else None
    return service.start_schedule(cadence)


@router.post("/stop")
async def stop_schedule(service: AttendanceSyncService = Depends(get_service)):
    return service.stop_schedule()


@router.get("/status")
async def schedule_status(service: AttendanceSyncService = Depends(get_service)):
    return {
        "success": True,
        "cron_job_running": service.is_schedule_running(),
        "sync_interval": service.sync_interval,
        "next_run_time": service.scheduler.next_run_time(),
    }
