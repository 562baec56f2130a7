"""FastAPI application factory."""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from attendance_sync.api.routes import health, schedule, sync as sync_routes
from attendance_sync.config import get_settings
from attendance_sync.sync.service import AttendanceSyncService, build_sync_service

logger = logging.getLogger(__name__)


def create_app(service: Optional[AttendanceSyncService] = None) -> FastAPI:
    """
    Build and return the FastAPI app.

    Args:
        service: Pre-built sync service (tests). Defaults to one assembled
            from settings at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        svc = service or build_sync_service(settings)
        app.state.sync_service = svc
        app.state.started_at = time.monotonic()

        result = await svc.initialize()
        if not result.success:
            logger.error("Sync service failed to initialize: %s", result.message)
        elif settings.auto_start_schedule:
            started = svc.start_schedule()
            if started.success:
                logger.info("Automatic sync started")
            else:
                logger.warning("Could not start automatic sync: %s", started.message)
                logger.warning("You can start it manually via POST /cron/start")
        yield
        await svc.close()
        logger.info("Sync service stopped")

    app = FastAPI(
        title="Attendance Sync API",
        description="TIPSOI attendance log → tabular store sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(sync_routes.router, tags=["sync"])
    app.include_router(schedule.router, prefix="/cron", tags=["cron"])

    return app


# Module-level app instance for uvicorn
app = create_app()
