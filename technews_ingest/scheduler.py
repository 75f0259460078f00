"""Timer-driven triggering of batch runs and daily housekeeping."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from time import monotonic
from typing import Any, Awaitable, Callable, Coroutine, Protocol
from zoneinfo import ZoneInfo

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .logging import get_logger, log_error
from .models import BatchResult

logger = get_logger(__name__)

INGEST_TASK = "ingest"
CLEANUP_TASK = "cleanup"


class BatchRunner(Protocol):
    async def run_all(self) -> BatchResult:
        ...


@dataclass(frozen=True)
class TaskStatus:
    name: str
    running: bool
    next_run: datetime | None = None


def seconds_until_hour(now: datetime, hour: int, tz: str = "UTC") -> float:
    """Seconds from ``now`` until the next occurrence of ``hour``:00 in ``tz``."""
    local = now.astimezone(ZoneInfo(tz))
    target = local.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target.astimezone(UTC) <= now.astimezone(UTC):
        target += timedelta(days=1)
    # Measured in UTC: a DST change inside the gap alters its length
    return (target.astimezone(UTC) - now.astimezone(UTC)).total_seconds()


class Scheduler:
    """Owns the ingest and cleanup timers; decides only *when* things run."""

    def __init__(
        self,
        orchestrator: BatchRunner,
        cleanup: Callable[[], Awaitable[Any]] | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
        ingest_interval: float | None = None,
    ):
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator
        self.cleanup = cleanup
        self.clock = clock or SystemClock()
        self.ingest_interval = ingest_interval or self.settings.ingest_interval_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._next_run: dict[str, datetime] = {}
        self._stopped: list[asyncio.Task] = []

    def start_all(self) -> None:
        """Start the ingest timer and, when a cleanup job is set, the daily cleanup timer."""
        logger.info("Starting scheduled tasks")

        self._start(INGEST_TASK, self._ingest_loop())
        if self.cleanup is not None:
            self._start(CLEANUP_TASK, self._cleanup_loop())

        logger.info(
            "Scheduled tasks started",
            task_count=len(self._tasks),
            ingest_interval_seconds=self.ingest_interval,
            cleanup_hour=self.settings.cleanup_hour,
        )

    def stop_all(self) -> None:
        logger.info("Stopping all scheduled tasks")
        for name in list(self._tasks):
            self.stop_task(name)

    def stop_task(self, name: str) -> bool:
        """Cancel one timer. Returns False if no such task is running."""
        task = self._tasks.pop(name, None)
        self._next_run.pop(name, None)
        if task is None:
            return False
        task.cancel()
        self._stopped.append(task)
        logger.info("Stopped scheduled task", task=name)
        return True

    async def wait_stopped(self) -> None:
        """Wait until cancelled timers have finished unwinding."""
        tasks, self._stopped = self._stopped, []
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_task_status(self) -> list[TaskStatus]:
        return [
            TaskStatus(name=name, running=not task.done(), next_run=self._next_run.get(name))
            for name, task in self._tasks.items()
        ]

    async def trigger_ingest(self) -> BatchResult:
        """Run one batch now, on the same path the timer uses."""
        logger.info("Manual ingest triggered")
        try:
            result = await self.orchestrator.run_all()
        except Exception as e:
            logger.error(**log_error(e, context="manual_ingest"))
            raise
        logger.info(
            "Manual ingest completed",
            total_sources=result.total_sources,
            success_count=result.success_count,
            total_new_items=result.total_new_items,
            error_count=result.error_count,
        )
        return result

    def _start(self, name: str, coro: Coroutine[Any, Any, None]) -> None:
        existing = self._tasks.get(name)
        if existing is not None and not existing.done():
            coro.close()
            logger.debug("Scheduled task already running", task=name)
            return
        self._tasks[name] = asyncio.create_task(coro, name=f"scheduler-{name}")

    async def _ingest_loop(self) -> None:
        # Fixed cadence: time spent in a batch comes out of the next wait
        delay = self.ingest_interval
        while True:
            self._next_run[INGEST_TASK] = self.clock.now() + timedelta(seconds=delay)
            await asyncio.sleep(delay)
            started = monotonic()
            try:
                await self.orchestrator.run_all()
            except Exception as e:
                logger.error(**log_error(e, context="scheduled_ingest"))
            elapsed = monotonic() - started
            if elapsed > self.ingest_interval:
                logger.warning(
                    "Ingest batch overran its interval",
                    elapsed_seconds=round(elapsed, 1),
                    interval_seconds=self.ingest_interval,
                )
            delay = max(self.ingest_interval - elapsed, 0.0)

    async def _cleanup_loop(self) -> None:
        while True:
            delay = seconds_until_hour(
                self.clock.now(), self.settings.cleanup_hour, self.settings.scheduler_timezone
            )
            self._next_run[CLEANUP_TASK] = self.clock.now() + timedelta(seconds=delay)
            await asyncio.sleep(delay)
            logger.info("Running cleanup task")
            try:
                await self.cleanup()
                logger.info("Cleanup task completed")
            except Exception as e:
                logger.error(**log_error(e, context="scheduled_cleanup"))
