"""
Integration tests for AttendanceSyncService.

Uses AsyncMock for the TIPSOI client and an in-memory SQLite store.
No real network calls are made.
"""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httplib2 import ServerNotFoundError

from attendance_sync.config import Settings
from attendance_sync.exceptions import StoreError
from attendance_sync.models.sync import QueryFilters
from attendance_sync.scheduler.jobs import SyncScheduler
from attendance_sync.store.attendance_store import AttendanceStore
from attendance_sync.store.sheets import SheetsBackend
from attendance_sync.store.sql import SqlBackend
from attendance_sync.sync.orchestrator import SyncOrchestrator
from attendance_sync.sync.service import AttendanceSyncService, build_sync_service
from attendance_sync.tipsoi.client import TipsoiClient

from conftest import T0, make_fetch, make_mock_source


def make_service(source, store, clock, interval="*/5 * * * *"):
    orchestrator = SyncOrchestrator(source, store, clock=clock)
    return AttendanceSyncService(
        source=source,
        store=store,
        orchestrator=orchestrator,
        scheduler=SyncScheduler(orchestrator.run_auto_sync),
        sync_interval=interval,
    )


# ─── Initialization ───────────────────────────────────────────────────────────

class TestInitialize:
    @pytest.mark.asyncio
    async def test_creates_header(self, sql_backend, clock):
        service = make_service(make_mock_source(), AttendanceStore(sql_backend), clock)
        result = await service.initialize()
        assert result.success is True
        assert service.initialized is True
        assert await sql_backend.read_header() != []

    @pytest.mark.asyncio
    async def test_store_failure_reported(self, clock):
        store = AsyncMock()
        store.ensure_header = AsyncMock(side_effect=StoreError("key file not found"))
        service = make_service(make_mock_source(), store, clock)
        result = await service.initialize()
        assert result.success is False
        assert result.error == "StoreError"
        assert service.initialized is False


# ─── Sync operations ──────────────────────────────────────────────────────────

class TestSyncOperations:
    @pytest.mark.asyncio
    async def test_auto_sync_then_last_result(self, store, clock):
        service = make_service(make_mock_source(make_fetch(["a", "b"])), store, clock)
        result = await service.run_auto_sync()
        assert result.records_added == 2
        assert service.get_last_result() is result

    @pytest.mark.asyncio
    async def test_manual_sync_rejected_while_running(self, store, clock):
        service = make_service(make_mock_source(), store, clock)
        service.orchestrator._guard.acquire()
        try:
            result = await service.run_manual_sync(T0 - timedelta(days=1), T0)
        finally:
            service.orchestrator._guard.release()
        assert result.success is False
        assert result.error == "AlreadyRunning"
        assert result.message == "Another sync operation is already running"
        assert service.get_last_result() is None

    @pytest.mark.asyncio
    async def test_query_records_is_read_only(self, store, clock):
        service = make_service(make_mock_source(make_fetch(["a"])), store, clock)
        result = await service.query_records(
            QueryFilters(start_time=T0 - timedelta(days=1), end_time=T0)
        )
        assert result.success is True
        assert len(result.records) == 1
        assert await store.backend.read_keys() == set()

    @pytest.mark.asyncio
    async def test_query_unexpected_error_reported(self, store, clock):
        service = make_service(make_mock_source(), store, clock)
        with patch.object(service.orchestrator, "query_records", AsyncMock(side_effect=RuntimeError("boom"))):
            result = await service.query_records()
        assert result.success is False
        assert result.error == "UnexpectedError"


# ─── Schedule ─────────────────────────────────────────────────────────────────

class TestSchedule:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, store, clock):
        service = make_service(make_mock_source(), store, clock)
        started = service.start_schedule()
        assert started.success is True
        assert started.data == {"sync_interval": "*/5 * * * *"}
        assert service.is_schedule_running() is True

        again = service.start_schedule()
        assert again.success is False
        assert again.message == "Cron job already running"

        assert service.stop_schedule().success is True
        assert service.stop_schedule().message == "Cron job was not running"

    @pytest.mark.asyncio
    async def test_custom_cadence_becomes_interval(self, store, clock):
        service = make_service(make_mock_source(), store, clock)
        try:
            assert service.start_schedule("0 * * * *").success is True
            assert service.get_status()["sync_interval"] == "0 * * * *"
        finally:
            service.stop_schedule()

    @pytest.mark.asyncio
    async def test_invalid_cadence_reported(self, store, clock):
        service = make_service(make_mock_source(), store, clock)
        result = service.start_schedule("every five minutes")
        assert result.success is False
        assert result.error == "InvalidSchedule"
        assert service.is_schedule_running() is False


# ─── Status and diagnostics ───────────────────────────────────────────────────

class TestStatus:
    @pytest.mark.asyncio
    async def test_status_fields(self, store, clock):
        service = make_service(make_mock_source(make_fetch([])), store, clock)
        await service.initialize()
        await service.run_auto_sync()
        status = service.get_status()
        assert status["initialized"] is True
        assert status["cron_job_running"] is False
        assert status["sync_in_progress"] is False
        assert status["watermark"] == T0
        assert status["last_sync_result"].success is True
        assert status["attendance_service_status"]["has_token"] is True

    @pytest.mark.asyncio
    async def test_connectivity_reports_each_component(self, store, clock):
        source = make_mock_source()
        source.test_connection = AsyncMock(
            return_value={"success": False, "message": "timeout", "error": "UpstreamTimeout"}
        )
        service = make_service(source, store, clock)
        report = await service.test_connectivity()
        assert report["tests"]["attendance_service"]["success"] is False
        assert report["tests"]["store"]["success"] is True
        assert report["tests"]["store"]["store_info"]["backend"] == "sql"
        assert report["overall_success"] is False

    @pytest.mark.asyncio
    async def test_connectivity_sheets_unreachable(self, clock):
        sheets = MagicMock()
        sheets.spreadsheets.return_value.get.return_value.execute.side_effect = (
            ServerNotFoundError("Unable to find the server at sheets.googleapis.com")
        )
        store = AttendanceStore(
            SheetsBackend(spreadsheet_id="sheet-123", key_path="/unused.json", service=sheets)
        )
        source = make_mock_source()
        source.test_connection = AsyncMock(return_value={"success": True, "message": "ok"})
        service = make_service(source, store, clock)

        report = await service.test_connectivity()

        assert report["tests"]["store"]["success"] is False
        assert report["tests"]["store"]["error"] == "StoreError"
        assert report["overall_success"] is False

    @pytest.mark.asyncio
    async def test_connectivity_unexpected_errors_reported(self, clock):
        store = AsyncMock()
        store.describe = AsyncMock(side_effect=RuntimeError("boom"))
        source = make_mock_source()
        source.test_connection = AsyncMock(side_effect=RuntimeError("bad"))
        service = make_service(source, store, clock)

        report = await service.test_connectivity()

        assert report["tests"]["store"]["error"] == "UnexpectedError"
        assert report["tests"]["attendance_service"]["error"] == "UnexpectedError"
        assert report["overall_success"] is False

    @pytest.mark.asyncio
    async def test_clear_store(self, store, clock):
        service = make_service(make_mock_source(make_fetch(["a"])), store, clock)
        await service.run_auto_sync()
        result = await service.clear_store()
        assert result.success is True
        assert await store.backend.read_keys() == set()

    @pytest.mark.asyncio
    async def test_close_stops_schedule_and_source(self, store, clock):
        source = make_mock_source()
        service = make_service(source, store, clock)
        service.start_schedule()
        await service.close()
        assert service.is_schedule_running() is False
        source.close.assert_awaited_once()


# ─── Wiring ───────────────────────────────────────────────────────────────────

class TestBuildSyncService:
    def test_builds_from_settings(self):
        settings = Settings(
            tipsoi_base_url="https://api.tipsoi.test/logs",
            tipsoi_api_token="tok",
            store_backend="sql",
            database_url="sqlite://",
            initial_lookback_hours=6,
            sync_interval="*/10 * * * *",
            _env_file=None,
        )
        service = build_sync_service(settings)
        assert isinstance(service.source, TipsoiClient)
        assert isinstance(service.store.backend, SqlBackend)
        assert service.orchestrator.lookback == timedelta(hours=6)
        assert service.sync_interval == "*/10 * * * *"

    def test_unknown_backend_rejected(self):
        settings = Settings(store_backend="excel", _env_file=None)
        with pytest.raises(ValueError):
            build_sync_service(settings)
