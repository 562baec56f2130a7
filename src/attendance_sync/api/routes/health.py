"""Health, status and connectivity routes."""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from attendance_sync.api.deps import get_service
from attendance_sync.sync.service import AttendanceSyncService

router = APIRouter()


@router.get("/health")
def health(request: Request):
    """Liveness probe; does not touch upstream or the store."""
    started_at = getattr(request.app.state, "started_at", None)
    uptime = round(time.monotonic() - started_at, 1) if started_at is not None else 0.0
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": uptime,
    }


@router.get("/status")
async def status(service: AttendanceSyncService = Depends(get_service)):
    return {"success": True, "status": service.get_status()}


@router.get("/test")
async def test_services(service: AttendanceSyncService = Depends(get_service)):
    """Probe the TIPSOI API and the store."""
    return await service.test_connectivity()
