"""
Duplicate filter in front of a RowStore.

append_new() is the only write on the sync path. It reads every persisted
UID (a full scan of the key column), drops incoming records whose UID is
already stored or repeated earlier in the same batch, and appends the rest
in the order received. A UID therefore never lands in the store twice from
this process.

Writes are not rolled back: if the backend fails mid-append, rows it already
acknowledged stay, and the next run's key scan skips them.
"""
import logging
from typing import Any, Dict, List, Sequence

from attendance_sync.models.attendance import SHEET_HEADERS, AttendanceRecord
from attendance_sync.store.base import RowStore

logger = logging.getLogger(__name__)


class AttendanceStore:
    """Dedup-aware facade over a RowStore backend."""

    def __init__(self, backend: RowStore):
        self.backend = backend

    async def ensure_header(self) -> bool:
        """Write the header row if the store has none. Returns True if written."""
        if await self.backend.read_header():
            return False
        await self.backend.write_header(list(SHEET_HEADERS))
        logger.info("Header row created successfully")
        return True

    async def append_new(self, records: Sequence[AttendanceRecord]) -> int:
        """
        Append records whose UID is not yet persisted.

        Args:
            records: Normalized records, in the order they should be stored.

        Returns:
            Number of rows actually appended.

        Raises:
            StoreError: if reading keys or appending fails.
        """
        if not records:
            logger.info("No attendance records to append")
            return 0

        seen = set(await self.backend.read_keys())
        new_records: List[AttendanceRecord] = []
        for record in records:
            if record.uid in seen:
                continue
            seen.add(record.uid)
            new_records.append(record)

        if not new_records:
            logger.info("No new records to add")
            return 0

        await self.backend.append_rows([r.to_row() for r in new_records])
        logger.info("Added %d new attendance records", len(new_records))
        return len(new_records)

    async def clear(self) -> None:
        await self.backend.clear_rows()
        logger.info("Store cleared")

    async def describe(self) -> Dict[str, Any]:
        return await self.backend.describe()
