"""FastAPI dependencies that hand the shared sync service to routes."""
from fastapi import HTTPException, Request

from attendance_sync.sync.service import AttendanceSyncService


def get_service(request: Request) -> AttendanceSyncService:
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Sync service not initialized")
    return service


def get_ready_service(request: Request) -> AttendanceSyncService:
    """Like get_service, but also requires a successful initialize()."""
    service = get_service(request)
    if not service.initialized:
        raise HTTPException(status_code=503, detail="Sync service not initialized")
    return service
