"""Shared test fixtures."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from attendance_sync.models.attendance import AttendanceRow  # noqa: F401
from attendance_sync.store.attendance_store import AttendanceStore
from attendance_sync.store.sql import SqlBackend
from attendance_sync.tipsoi.client import FetchResult

PROJECT = {"code": "HQ", "name": "Head Office", "organization": "Acme Ltd"}

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_raw(record_uid: str, **overrides) -> Dict[str, Any]:
    """A valid raw TIPSOI record; override or set None to break it."""
    raw = {
        "uid": record_uid,
        "sync_time": "2024-03-01 09:00:05",
        "logged_time": "2024-03-01 09:00:01",
        "type": "card",
        "device_identifier": "DEV-01",
        "person_identifier": f"P-{record_uid}",
        "rfid": "0012345",
        "location": "Main gate",
        "primary_display_text": "Jane Doe",
        "secondary_display_text": "Engineering",
    }
    raw.update(overrides)
    return {k: v for k, v in raw.items() if v is not None}


def make_fetch(uids: List[str], project: Optional[dict] = None) -> FetchResult:
    return FetchResult(records=[make_raw(u) for u in uids], project=project or PROJECT)


def make_mock_source(*results) -> AsyncMock:
    """AsyncMock source whose fetch() returns (or raises) each result in turn."""
    source = AsyncMock()
    source.fetch = AsyncMock(side_effect=list(results))
    source.get_status = lambda: {"base_url": "https://tipsoi.test/logs", "has_token": True}
    return source


class Clock:
    """Settable clock for orchestrator tests."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables are created by the backend on demand."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="sql_backend")
def sql_backend_fixture(engine) -> SqlBackend:
    return SqlBackend(engine=engine)


@pytest_asyncio.fixture(name="store")
async def store_fixture(sql_backend) -> AttendanceStore:
    store = AttendanceStore(sql_backend)
    await store.ensure_header()
    return store


@pytest.fixture(name="clock")
def clock_fixture() -> Clock:
    return Clock()
