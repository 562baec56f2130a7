"""
Result models for sync and query operations.

A sync attempt ends in exactly one of three shapes, discriminated by
``status``:

    SyncSucceeded  - the attempt ran; records may or may not have been added
    SyncSkipped    - an auto sync found the guard held and did nothing
    SyncFailed     - the attempt ran (or was rejected) and carries ``error``

Every shape has ``success`` and a human-readable ``message``.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from attendance_sync.models.attendance import AttendanceRecord, Project

SyncMode = Literal["auto", "manual"]


class _SyncResultBase(BaseModel):
    success: bool
    message: str
    mode: SyncMode
    started_at: datetime
    duration_ms: float = 0.0
    records_fetched: int = 0
    records_added: int = 0


class SyncSucceeded(_SyncResultBase):
    status: Literal["succeeded"] = "succeeded"
    success: bool = True
    records_dropped: int = 0
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


class SyncSkipped(_SyncResultBase):
    status: Literal["skipped"] = "skipped"
    success: bool = False
    message: str = "Sync already in progress"


class SyncFailed(_SyncResultBase):
    status: Literal["failed"] = "failed"
    success: bool = False
    error: str


SyncResult = Annotated[
    Union[SyncSucceeded, SyncSkipped, SyncFailed],
    Field(discriminator="status"),
]


class QueryFilters(BaseModel):
    start_time: datetime
    end_time: datetime
    criteria: str = "sync_time"


class QueryResult(BaseModel):
    """Outcome of a read-only fetch + normalize pass."""

    success: bool
    message: str
    records: List[AttendanceRecord] = []
    project: Optional[Project] = None
    records_fetched: int = 0
    records_dropped: int = 0
    filters: Optional[QueryFilters] = None
    started_at: datetime
    duration_ms: float = 0.0
    error: Optional[str] = None


class OperationResult(BaseModel):
    """Generic ``{success, message}`` shape for control operations."""

    success: bool
    message: str
    error: Optional[str] = None
    data: Dict[str, Any] = {}
