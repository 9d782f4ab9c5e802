"""
Lifecycle Worker - runs every scheduled lead and reminder job in one process.

Jobs (schedules in TIMEZONE local time, all configurable):
- direct_lead_expiry: every 10 minutes
- direct_lead_reminders: every 10 minutes
- service_reminder_notifications: daily at 09:00
- trade_license_expiry: daily at 09:00
- service_pattern_analysis: Sundays at 02:00
- seasonal_reminders: 1st of each month at 08:00
- sitemap_warm / sitemap_ping: every 6 / 12 hours

Services are built once at startup and shared by every job. SIGTERM/SIGINT
stop the loop; jobs already running are allowed to finish.
"""

import asyncio
import logging
import signal
import sys
from datetime import UTC, datetime

from database.connection import dispose_engine
from homezy.workers.dependencies import build_worker_dependencies
from homezy.workers.health import update_health_check
from homezy.workers.registry import build_scheduler
from homezy.workers.scheduler import next_fire_time
from shared.config import get_settings
from shared.logging_config import configure_logging
from shared.redis_client import RedisRealtimeEmitter, close_redis_client
from shared.startup_validator import StartupValidationError, validate_startup_config

logger = logging.getLogger(__name__)

POLL_SECONDS = 20.0


async def async_main() -> None:
    settings = get_settings()
    validate_startup_config(settings)
    deps = build_worker_dependencies(realtime_emitter=RedisRealtimeEmitter())
    scheduler = build_scheduler(deps, settings)

    now = deps.clock()
    for task in scheduler.tasks.values():
        upcoming = next_fire_time(task.schedule, now)
        logger.info(f"  - {task.name}: next run {upcoming.isoformat() if upcoming else 'never'}")

    await update_health_check("lifecycle_worker", datetime.now(UTC), "healthy", 0, 0)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info(f"Lifecycle worker started (timezone={settings.TIMEZONE})")
    try:
        await scheduler.run_forever(stop_event, poll_seconds=POLL_SECONDS)
        await deps.notifications.drain()
    finally:
        await close_redis_client()
        await dispose_engine()
        logger.info("Lifecycle worker stopped")


def run_lifecycle_worker() -> None:
    """Synchronous entry point: configure logging, then run the async loop."""
    configure_logging("homezy-worker")
    logger.info("Starting lifecycle worker...")
    try:
        asyncio.run(async_main())
    except StartupValidationError as e:
        logger.critical(f"Startup blocked: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Lifecycle worker stopped by user")


if __name__ == "__main__":
    run_lifecycle_worker()
