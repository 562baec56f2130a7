"""
AttendanceSyncService: the surface the API layer and entrypoints call.

Wires the TIPSOI client, the store and the orchestrator together with the
scheduler, and converts every failure into a ``{success, message, ...}``
result. Nothing here raises to its caller.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from attendance_sync.config import Settings
from attendance_sync.exceptions import AlreadyRunning, AttendanceSyncError, InvalidSchedule
from attendance_sync.models.sync import (
    OperationResult,
    QueryFilters,
    QueryResult,
    SyncFailed,
    SyncResult,
)
from attendance_sync.scheduler.jobs import SyncScheduler
from attendance_sync.store.attendance_store import AttendanceStore
from attendance_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class AttendanceSyncService:
    """Service-level operations over one orchestrator instance."""

    def __init__(
        self,
        source,
        store: AttendanceStore,
        orchestrator: SyncOrchestrator,
        scheduler: SyncScheduler,
        sync_interval: str,
    ):
        self.source = source
        self.store = store
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self.sync_interval = sync_interval
        self.initialized = False
        self._created_at = time.monotonic()

    async def initialize(self) -> OperationResult:
        """Prepare the store (header row). Safe to call more than once."""
        logger.info("Initializing sync service...")
        try:
            await self.store.ensure_header()
        except AttendanceSyncError as exc:
            logger.error("Failed to initialize sync service: %s", exc)
            return OperationResult(success=False, message=str(exc), error=exc.kind)
        self.initialized = True
        logger.info("Sync service initialized successfully")
        return OperationResult(success=True, message="Sync service initialized")

    # ─── Sync ─────────────────────────────────────────────────────────────────

    async def run_auto_sync(self) -> SyncResult:
        return await self.orchestrator.run_auto_sync()

    async def run_manual_sync(self, start: datetime, end: datetime) -> SyncResult:
        """Sync ``[start, end)``. The caller has checked ``start < end``."""
        try:
            return await self.orchestrator.run_manual_sync(start, end)
        except AlreadyRunning as exc:
            logger.warning("Manual sync rejected: %s", exc)
            return SyncFailed(
                message=str(exc),
                error=exc.kind,
                mode="manual",
                started_at=datetime.now(timezone.utc),
            )

    async def query_records(self, filters: Optional[QueryFilters] = None) -> QueryResult:
        started_at = datetime.now(timezone.utc)
        try:
            return await self.orchestrator.query_records(filters)
        except Exception as exc:
            logger.exception("Unexpected error during fetch")
            return QueryResult(
                success=False,
                message=f"Unexpected error: {exc}",
                error="UnexpectedError",
                filters=filters,
                started_at=started_at,
            )

    def get_last_result(self) -> Optional[SyncResult]:
        return self.orchestrator.last_result

    # ─── Schedule ─────────────────────────────────────────────────────────────

    def start_schedule(self, cadence: Optional[str] = None) -> OperationResult:
        cadence = cadence or self.sync_interval
        try:
            started = self.scheduler.start(cadence)
        except InvalidSchedule as exc:
            logger.error("Could not start automatic sync: %s", exc)
            return OperationResult(success=False, message=str(exc), error=exc.kind)
        if started:
            self.sync_interval = cadence
            return OperationResult(
                success=True,
                message="Cron job started successfully",
                data={"sync_interval": cadence},
            )
        return OperationResult(success=False, message="Cron job already running")

    def stop_schedule(self) -> OperationResult:
        if self.scheduler.stop():
            return OperationResult(success=True, message="Cron job stopped successfully")
        return OperationResult(success=False, message="Cron job was not running")

    def is_schedule_running(self) -> bool:
        return self.scheduler.is_running()

    # ─── Inspection ───────────────────────────────────────────────────────────

    def get_status(self) -> Dict[str, Any]:
        state = self.orchestrator.snapshot()
        return {
            "initialized": self.initialized,
            "cron_job_running": self.scheduler.is_running(),
            "sync_interval": self.sync_interval,
            "next_run_time": self.scheduler.next_run_time(),
            "sync_in_progress": state["sync_in_progress"],
            "watermark": state["watermark"],
            "last_sync_result": state["last_result"],
            "attendance_service_status": self.source.get_status(),
            "uptime_seconds": round(time.monotonic() - self._created_at, 1),
        }

    async def test_connectivity(self) -> Dict[str, Any]:
        """Probe the upstream API and the store independently."""
        report: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tests": {},
        }

        logger.info("Testing attendance service...")
        try:
            report["tests"]["attendance_service"] = await self.source.test_connection()
        except Exception as exc:
            logger.exception("Unexpected error testing attendance service")
            report["tests"]["attendance_service"] = {
                "success": False,
                "message": f"Unexpected error: {exc}",
                "error": "UnexpectedError",
            }

        logger.info("Testing store...")
        try:
            info = await self.store.describe()
            report["tests"]["store"] = {
                "success": True,
                "message": "Store connection successful",
                "store_info": info,
            }
        except AttendanceSyncError as exc:
            report["tests"]["store"] = {
                "success": False,
                "message": str(exc),
                "error": exc.kind,
            }
        except Exception as exc:
            logger.exception("Unexpected error testing store")
            report["tests"]["store"] = {
                "success": False,
                "message": f"Unexpected error: {exc}",
                "error": "UnexpectedError",
            }

        report["overall_success"] = all(t["success"] for t in report["tests"].values())
        return report

    # ─── Administration ───────────────────────────────────────────────────────

    async def clear_store(self) -> OperationResult:
        """Delete all data rows. Not part of any sync path."""
        try:
            await self.store.clear()
        except AttendanceSyncError as exc:
            logger.error("Error clearing store: %s", exc)
            return OperationResult(success=False, message=str(exc), error=exc.kind)
        return OperationResult(success=True, message="Store cleared successfully")

    async def close(self) -> None:
        self.scheduler.stop()
        await self.source.close()


def build_sync_service(settings: Settings) -> AttendanceSyncService:
    """Assemble the production object graph from settings."""
    from attendance_sync.store.factory import build_backend
    from attendance_sync.tipsoi.client import TipsoiClient

    source = TipsoiClient(
        base_url=settings.tipsoi_base_url,
        api_token=settings.tipsoi_api_token,
        per_page=settings.per_page,
        timeout=settings.request_timeout,
    )
    store = AttendanceStore(build_backend(settings))
    orchestrator = SyncOrchestrator(
        source,
        store,
        lookback=timedelta(hours=settings.initial_lookback_hours),
    )
    scheduler = SyncScheduler(orchestrator.run_auto_sync, timezone=settings.sync_timezone)
    return AttendanceSyncService(
        source=source,
        store=store,
        orchestrator=orchestrator,
        scheduler=scheduler,
        sync_interval=settings.sync_interval,
    )
