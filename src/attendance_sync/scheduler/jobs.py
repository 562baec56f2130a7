"""
APScheduler job for recurring auto sync.

The cadence is a 5-field crontab expression (default every 5 minutes, UTC).
Each tick calls the orchestrator's run_auto_sync(). The scheduler does not
wait for a slow tick before firing the next one; the orchestrator's guard
turns an overlapping tick into a skip.

The scheduler runs inside the API process (started from the app lifespan).
"""
import logging
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from attendance_sync.exceptions import InvalidSchedule

logger = logging.getLogger(__name__)

AUTO_SYNC_JOB_ID = "auto_sync"

# Overlapping ticks must reach the orchestrator so its guard can skip them.
MAX_CONCURRENT_TICKS = 3


def parse_cadence(expression: str, timezone: str = "UTC") -> CronTrigger:
    """
    Parse a crontab expression into a CronTrigger.

    Raises:
        InvalidSchedule: if the expression (or timezone) is rejected.
    """
    try:
        return CronTrigger.from_crontab(expression, timezone=timezone)
    except (ValueError, TypeError, LookupError) as exc:
        raise InvalidSchedule(expression, details=str(exc)) from exc


class SyncScheduler:
    """
    Start/stop wrapper around an AsyncIOScheduler with one auto-sync job.

    Usage:
        scheduler = SyncScheduler(orchestrator.run_auto_sync)
        scheduler.start("*/5 * * * *")   # must be called with a running loop
        ...
        scheduler.stop()
    """

    def __init__(self, job: Callable[[], Awaitable], timezone: str = "UTC"):
        """
        Args:
            job: Coroutine function invoked on every tick.
            timezone: Timezone the cron fields are interpreted in.
        """
        self._job = job
        self.timezone = timezone
        self.cadence: Optional[str] = None
        self._scheduler: Optional[AsyncIOScheduler] = None

    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self, cadence: str) -> bool:
        """
        Start ticking on ``cadence``.

        Returns:
            True if started, False if already running (nothing changes).

        Raises:
            InvalidSchedule: if ``cadence`` does not parse, whether or not
                the schedule is running; nothing changes.
        """
        trigger = parse_cadence(cadence, self.timezone)

        if self.is_running():
            logger.info("Auto sync schedule already running")
            return False

        scheduler = AsyncIOScheduler(timezone=self.timezone)
        scheduler.add_job(
            self._tick,
            trigger=trigger,
            id=AUTO_SYNC_JOB_ID,
            replace_existing=True,
            max_instances=MAX_CONCURRENT_TICKS,
            coalesce=True,
        )
        scheduler.start()

        self._scheduler = scheduler
        self.cadence = cadence
        logger.info("Auto sync schedule started with interval: %s", cadence)
        return True

    def stop(self) -> bool:
        """
        Stop ticking. In-flight syncs run to completion.

        Returns:
            True if stopped, False if it was not running.
        """
        if not self.is_running():
            return False
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Auto sync schedule stopped")
        return True

    def next_run_time(self):
        if not self.is_running():
            return None
        job = self._scheduler.get_job(AUTO_SYNC_JOB_ID)
        return job.next_run_time if job else None

    async def _tick(self) -> None:
        result = await self._job()
        logger.info(
            "Scheduled sync finished: %s",
            getattr(result, "message", result),
        )
