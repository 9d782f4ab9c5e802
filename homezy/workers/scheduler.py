"""
Periodic task scheduler for the lifecycle worker.

Tasks are registered against a schedule (a 5-field cron expression evaluated
in the platform timezone, or a fixed interval in minutes). The scheduler
itself never looks at the wall clock: `tick(now)` is handed the current time,
and `run_forever` reads it from the injected clock, so tests can drive it
minute by minute.

Each task fires at most once per matching minute, and a task is never started
while its previous run is still in progress. Different tasks run
independently and may overlap.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from croniter import croniter

from homezy.utils.date_utils import get_timezone, utc_now

logger = logging.getLogger(__name__)


class Schedule(Protocol):
    def matches(self, moment: datetime) -> bool: ...


# ============================================================================
# Cron expressions
# ============================================================================


class CronParseError(ValueError):
    """Cron expression is malformed or out of range."""


class CronSchedule:
    """
    Standard 5-field cron expression: minute hour day-of-month month day-of-week,
    evaluated by croniter in the given timezone.

    When both day fields are restricted a day matches if either does. A day
    field starting with `*` (including `*/n`) counts as unrestricted, so it is
    ANDed with the other one, as Vixie cron does.
    """

    def __init__(self, expression: str, tz: ZoneInfo | None = None):
        parts = expression.split()
        if len(parts) != 5:
            raise CronParseError(f"Expected 5 fields, got {len(parts)}: {expression!r}")
        if not croniter.is_valid(expression):
            raise CronParseError(f"Invalid cron expression: {expression!r}")
        self.expression = expression
        self.tz = tz or get_timezone()
        self.day_or = not (parts[2].startswith("*") or parts[4].startswith("*"))

    def matches(self, moment: datetime) -> bool:
        local = _minute_of(moment.astimezone(self.tz))
        return croniter.match(self.expression, local, day_or=self.day_or)

    def next_after(self, moment: datetime) -> datetime:
        """First matching minute strictly after `moment`, in UTC."""
        local = moment.astimezone(self.tz)
        upcoming = croniter(self.expression, local, day_or=self.day_or).get_next(datetime)
        return upcoming.astimezone(UTC)

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r}, tz={str(self.tz)!r})"


@dataclass(frozen=True)
class IntervalSchedule:
    """Fires every `minutes` minutes, aligned to the epoch (e.g. :00, :10, :20)."""

    minutes: int

    def __post_init__(self):
        if self.minutes < 1:
            raise ValueError("Interval must be at least one minute")

    def matches(self, moment: datetime) -> bool:
        return int(moment.timestamp() // 60) % self.minutes == 0


# ============================================================================
# Scheduler
# ============================================================================


@dataclass
class PeriodicTask:
    name: str
    schedule: Schedule
    func: Callable[[], Awaitable[Any]]
    last_fired_minute: datetime | None = None
    running: asyncio.Task | None = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self.running is not None and not self.running.done()


def _minute_of(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


class Scheduler:
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.tasks: dict[str, PeriodicTask] = {}

    def register(
        self, name: str, schedule: Schedule, func: Callable[[], Awaitable[Any]]
    ) -> PeriodicTask:
        if name in self.tasks:
            raise ValueError(f"Task already registered: {name}")
        task = PeriodicTask(name=name, schedule=schedule, func=func)
        self.tasks[name] = task
        logger.info(f"Registered periodic task {name} ({schedule!r})")
        return task

    def due_tasks(self, now: datetime) -> list[PeriodicTask]:
        """Tasks whose schedule matches `now` and that have not fired this minute."""
        minute = _minute_of(now)
        return [
            task
            for task in self.tasks.values()
            if task.last_fired_minute != minute and task.schedule.matches(minute)
        ]

    async def _run(self, task: PeriodicTask) -> Any:
        started = self.clock()
        logger.info(f"Running task {task.name}", extra={"job_name": task.name})
        try:
            result = await task.func()
        except Exception as e:
            logger.exception(f"Task {task.name} failed: {e}", extra={"job_name": task.name})
            return None
        elapsed = (self.clock() - started).total_seconds()
        logger.info(f"Task {task.name} finished in {elapsed:.2f}s", extra={"job_name": task.name})
        return result

    def tick(self, now: datetime | None = None) -> list[str]:
        """
        Launch every due task as an independent asyncio task.

        Returns:
            Names of the tasks started on this tick
        """
        now = now or self.clock()
        minute = _minute_of(now)
        started = []
        for task in self.due_tasks(now):
            task.last_fired_minute = minute
            if task.is_running:
                logger.warning(
                    f"Task {task.name} still running from a previous tick, skipping",
                    extra={"job_name": task.name},
                )
                continue
            task.running = asyncio.create_task(self._run(task), name=f"periodic:{task.name}")
            started.append(task.name)
        return started

    async def run_task_now(self, name: str) -> Any:
        """
        Run a task immediately and return its result.

        Raises:
            KeyError: Unknown task name
            RuntimeError: Task is already running
        """
        task = self.tasks[name]
        if task.is_running:
            raise RuntimeError(f"Task {name} is already running")
        task.running = asyncio.create_task(self._run(task), name=f"manual:{name}")
        return await task.running

    async def run_forever(self, stop_event: asyncio.Event, poll_seconds: float = 20.0) -> None:
        logger.info(f"Scheduler started with {len(self.tasks)} tasks")
        while not stop_event.is_set():
            self.tick(self.clock())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                pass
        await self.shutdown()

    async def shutdown(self, timeout: float | None = None) -> None:
        """Wait for in-flight runs to finish."""
        in_flight = [task.running for task in self.tasks.values() if task.is_running]
        if not in_flight:
            return
        logger.info(f"Waiting for {len(in_flight)} running task(s) to finish")
        done, pending = await asyncio.wait(in_flight, timeout=timeout)
        for pending_task in pending:
            pending_task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} task(s) still running at shutdown")


def next_fire_time(schedule: Schedule, after: datetime, horizon_days: int = 366) -> datetime | None:
    """First minute strictly after `after` at which `schedule` matches."""
    if isinstance(schedule, CronSchedule):
        upcoming = schedule.next_after(after)
        return upcoming if upcoming <= after + timedelta(days=horizon_days) else None
    moment = _minute_of(after) + timedelta(minutes=1)
    limit = after + timedelta(days=horizon_days)
    while moment <= limit:
        if schedule.matches(moment):
            return moment
        moment += timedelta(minutes=1)
    return None
