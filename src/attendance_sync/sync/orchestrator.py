"""
SyncOrchestrator: coordinates fetch → normalize → append and owns sync state.

Flow for one sync attempt:
  1. Acquire the single-flight guard (non-blocking check-and-set)
  2. Fetch raw records for the window from the source client
  3. Normalize (invalid records are dropped and counted)
  4. Append records whose UID is not yet stored
  5. Record the result; for auto syncs, advance the watermark
  6. Release the guard

State owned here and nowhere else:
  - watermark:   exclusive lower bound of the next auto-sync window (in memory)
  - guard:       held while an auto or manual sync runs
  - last_result: the most recent attempt that actually ran

Auto sync windows run from the watermark to the "now" captured when the
attempt starts. Until an auto sync succeeds there is no watermark, and the
window starts at the first attempt's now - lookback. The watermark moves to
the captured "now" only after the attempt succeeds, so a failed attempt
leaves the next window starting where this one did.

Adapter failures never escape a sync attempt: they are classified into
SyncFailed and kept as last_result.
"""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from attendance_sync.exceptions import AlreadyRunning, AttendanceSyncError
from attendance_sync.models.sync import (
    QueryFilters,
    QueryResult,
    SyncFailed,
    SyncMode,
    SyncResult,
    SyncSkipped,
    SyncSucceeded,
)
from attendance_sync.store.attendance_store import AttendanceStore
from attendance_sync.tipsoi.normalizer import normalize_project, normalize_records

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=24)
DEFAULT_CRITERIA = "sync_time"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(t0: float) -> float:
    return round((time.monotonic() - t0) * 1000, 1)


@dataclass
class SyncState:
    watermark: Optional[datetime] = None
    # Lower bound of the first auto window, held until an auto sync succeeds
    pending_start: Optional[datetime] = None
    last_result: Optional[SyncResult] = None


class SyncOrchestrator:
    """Single-flight sync state machine over a source client and a store."""

    def __init__(
        self,
        source,
        store: AttendanceStore,
        *,
        lookback: timedelta = DEFAULT_LOOKBACK,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            source: TipsoiClient instance (or AsyncMock in tests); must
                provide ``await fetch(start, end, criteria)``.
            store: AttendanceStore used for dedup + append.
            lookback: First-run window length for auto syncs.
            clock: Returns the current UTC time.
        """
        self.source = source
        self.store = store
        self.lookback = lookback
        self._clock = clock
        self._state = SyncState()
        self._guard = threading.Lock()

    # ─── State inspection ─────────────────────────────────────────────────────

    @property
    def watermark(self) -> Optional[datetime]:
        return self._state.watermark

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._state.last_result

    @property
    def is_syncing(self) -> bool:
        return self._guard.locked()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sync_in_progress": self.is_syncing,
            "watermark": self._state.watermark,
            "last_result": self._state.last_result,
        }

    # ─── Sync entry points ────────────────────────────────────────────────────

    async def run_auto_sync(self) -> SyncResult:
        """
        Sync everything since the watermark.

        Returns SyncSkipped (without touching any state) if another sync
        holds the guard.
        """
        started_at = self._clock()
        if not self._guard.acquire(blocking=False):
            logger.info("Sync already running, skipping this cycle")
            return SyncSkipped(mode="auto", started_at=started_at)

        try:
            window_end = started_at
            window_start = self._first_window_start(window_end)
            logger.info("--- Starting auto sync at %s ---", started_at.isoformat())
            result = await self._execute("auto", window_start, window_end, started_at)
            if result.success:
                self._advance_watermark(window_end)
            self._state.last_result = result
            return result
        finally:
            self._guard.release()

    async def run_manual_sync(self, start: datetime, end: datetime) -> SyncResult:
        """
        Sync an explicit window. Callers validate ``start < end``.

        The watermark is never read or written here.

        Raises:
            AlreadyRunning: if another sync holds the guard.
        """
        started_at = self._clock()
        if not self._guard.acquire(blocking=False):
            raise AlreadyRunning()

        try:
            logger.info(
                "--- Starting manual sync from %s to %s ---",
                start.isoformat(),
                end.isoformat(),
            )
            result = await self._execute("manual", start, end, started_at)
            self._state.last_result = result
            return result
        finally:
            self._guard.release()

    async def query_records(self, filters: Optional[QueryFilters] = None) -> QueryResult:
        """
        Fetch and normalize without persisting. Takes no guard and leaves all
        sync state untouched.

        Default window: Jan 1 of the current year to Dec 31 of the next year.
        """
        started_at = self._clock()
        if filters is None:
            filters = self.default_filters()
        t0 = time.monotonic()
        logger.info(
            "--- Starting fetch from %s to %s ---",
            filters.start_time.isoformat(),
            filters.end_time.isoformat(),
        )

        try:
            fetched = await self.source.fetch(
                filters.start_time, filters.end_time, filters.criteria
            )
            batch = normalize_records(fetched.records, fetched.project)
        except AttendanceSyncError as exc:
            logger.error("Fetch operation failed: %s", exc)
            return QueryResult(
                success=False,
                message=str(exc),
                error=exc.kind,
                filters=filters,
                started_at=started_at,
                duration_ms=_elapsed_ms(t0),
            )

        if not fetched.records:
            message = "No records found"
        elif not batch.records:
            message = "No valid records after processing"
        else:
            message = "Data fetched successfully"

        return QueryResult(
            success=True,
            message=message,
            records=batch.records,
            project=normalize_project(fetched.project),
            records_fetched=len(fetched.records),
            records_dropped=batch.dropped_count,
            filters=filters,
            started_at=started_at,
            duration_ms=_elapsed_ms(t0),
        )

    def default_filters(self) -> QueryFilters:
        year = self._clock().year
        return QueryFilters(
            start_time=datetime(year, 1, 1, tzinfo=timezone.utc),
            end_time=datetime(year + 1, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
            criteria=DEFAULT_CRITERIA,
        )

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _advance_watermark(self, value: datetime) -> None:
        current = self._state.watermark
        if current is None or value > current:
            self._state.watermark = value
        self._state.pending_start = None

    def _first_window_start(self, now: datetime) -> datetime:
        if self._state.watermark is not None:
            return self._state.watermark
        if self._state.pending_start is None:
            self._state.pending_start = now - self.lookback
        return self._state.pending_start

    async def _execute(
        self,
        mode: SyncMode,
        window_start: datetime,
        window_end: datetime,
        started_at: datetime,
    ) -> SyncResult:
        """Run fetch → normalize → append once. Never raises."""
        t0 = time.monotonic()
        records_fetched = 0

        try:
            fetched = await self.source.fetch(window_start, window_end, DEFAULT_CRITERIA)
            records_fetched = len(fetched.records)

            if not fetched.records:
                logger.info("No new attendance records found")
                return SyncSucceeded(
                    message="No new records",
                    mode=mode,
                    started_at=started_at,
                    duration_ms=_elapsed_ms(t0),
                    window_start=window_start,
                    window_end=window_end,
                )

            batch = normalize_records(fetched.records, fetched.project)
            if not batch.records:
                logger.info("No valid attendance records to sync")
                return SyncSucceeded(
                    message="No valid records to sync",
                    mode=mode,
                    started_at=started_at,
                    duration_ms=_elapsed_ms(t0),
                    records_fetched=records_fetched,
                    records_dropped=batch.dropped_count,
                    window_start=window_start,
                    window_end=window_end,
                )

            records_added = await self.store.append_new(batch.records)

        except AttendanceSyncError as exc:
            logger.error("%s sync failed: %s", mode.capitalize(), exc)
            return SyncFailed(
                message=str(exc),
                error=exc.kind,
                mode=mode,
                started_at=started_at,
                duration_ms=_elapsed_ms(t0),
                records_fetched=records_fetched,
            )
        except Exception as exc:
            logger.exception("Unexpected error during %s sync", mode)
            return SyncFailed(
                message=f"Unexpected error: {exc}",
                error="UnexpectedError",
                mode=mode,
                started_at=started_at,
                duration_ms=_elapsed_ms(t0),
                records_fetched=records_fetched,
            )

        result = SyncSucceeded(
            message="Sync completed successfully",
            mode=mode,
            started_at=started_at,
            duration_ms=_elapsed_ms(t0),
            records_fetched=records_fetched,
            records_added=records_added,
            records_dropped=batch.dropped_count,
            window_start=window_start,
            window_end=window_end,
        )
        logger.info(
            "--- Sync completed in %.0fms: fetched=%d added=%d dropped=%d ---",
            result.duration_ms,
            result.records_fetched,
            result.records_added,
            result.records_dropped,
        )
        return result
