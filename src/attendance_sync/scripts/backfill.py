"""
Backfill script: sync historical attendance records in fixed-size chunks.

Usage:
    python -m attendance_sync.scripts.backfill --days 30 --chunk-days 1

Runs one manual sync per chunk, newest chunk first, sleeping between chunks
to go easy on the TIPSOI API. Manual syncs leave the auto-sync watermark
alone, and records already in the store are skipped by UID.

A failed chunk is logged and the run moves on to the next one.
"""
import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

CHUNK_DAYS = 1
SLEEP_BETWEEN_CHUNKS = 5.0


def chunk_windows(
    start: datetime, end: datetime, chunk: timedelta
) -> List[Tuple[datetime, datetime]]:
    """
    Split ``[start, end)`` into consecutive windows, newest first.

    Raises:
        ValueError: if ``chunk`` is not positive.
    """
    if chunk <= timedelta(0):
        raise ValueError(f"chunk must be positive, got {chunk}")
    windows = []
    current_end = end
    while current_end > start:
        current_start = max(current_end - chunk, start)
        windows.append((current_start, current_end))
        current_end = current_start
    return windows


async def _backfill(days: int, chunk_days: int = CHUNK_DAYS) -> Tuple[int, int]:
    """
    Returns:
        (records added, failed chunks)
    """
    from attendance_sync.config import get_settings
    from attendance_sync.sync.service import build_sync_service

    service = build_sync_service(get_settings())
    total_added = 0
    failed_chunks = 0

    try:
        init = await service.initialize()
        if not init.success:
            logger.error("Initialization failed: %s", init.message)
            return 0, 0

        end_date = datetime.now(timezone.utc)
        start_date = end_date - timedelta(days=days)
        windows = chunk_windows(start_date, end_date, timedelta(days=chunk_days))

        for i, (chunk_start, chunk_end) in enumerate(windows):
            logger.info(
                "Syncing %s → %s",
                chunk_start.strftime("%Y-%m-%d %H:%M"),
                chunk_end.strftime("%Y-%m-%d %H:%M"),
            )
            result = await service.run_manual_sync(chunk_start, chunk_end)
            if result.success:
                total_added += result.records_added
                logger.info(
                    "Fetched %d, added %d", result.records_fetched, result.records_added
                )
            else:
                failed_chunks += 1
                logger.warning("Chunk failed (%s): %s", result.error, result.message)

            if i < len(windows) - 1:
                await asyncio.sleep(SLEEP_BETWEEN_CHUNKS)
    finally:
        await service.close()

    logger.info(
        "Backfill complete. Added: %d, Failed chunks: %d", total_added, failed_chunks
    )
    return total_added, failed_chunks


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill TIPSOI attendance records")
    parser.add_argument(
        "--days",
        type=_positive_int,
        default=7,
        help="Number of days to backfill (default: 7)",
    )
    parser.add_argument(
        "--chunk-days",
        type=_positive_int,
        default=CHUNK_DAYS,
        help=f"Days per manual sync (default: {CHUNK_DAYS})",
    )
    args = parser.parse_args()
    asyncio.run(_backfill(args.days, args.chunk_days))


if __name__ == "__main__":
    main()
