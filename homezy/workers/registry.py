"""Lifecycle jobs by name, and the scheduler wiring built from settings."""

from collections.abc import Awaitable, Callable
from dataclasses import asdict, is_dataclass
from typing import Any

from homezy.utils.date_utils import get_timezone
from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.direct_lead_expiry import expire_direct_leads
from homezy.workers.direct_lead_reminders import send_direct_lead_reminders
from homezy.workers.scheduler import CronSchedule, Scheduler
from homezy.workers.seasonal_reminders import run_seasonal_reminders
from homezy.workers.service_pattern_analysis import run_service_pattern_analysis
from homezy.workers.service_reminder_notifications import send_service_reminder_notifications
from homezy.workers.sitemap_ping import ping_search_engines, warm_sitemap
from homezy.workers.trade_license_expiry import run_trade_license_expiry
from shared.config import Settings, get_settings

JobFunc = Callable[[WorkerDependencies], Awaitable[Any]]

# job name -> (job function, settings attribute holding its cron expression)
JOBS: dict[str, tuple[JobFunc, str]] = {
    "direct_lead_expiry": (expire_direct_leads, "DIRECT_LEAD_EXPIRY_CRON"),
    "direct_lead_reminders": (send_direct_lead_reminders, "DIRECT_LEAD_REMINDERS_CRON"),
    "service_reminder_notifications": (
        send_service_reminder_notifications,
        "SERVICE_REMINDER_NOTIFICATIONS_CRON",
    ),
    "trade_license_expiry": (run_trade_license_expiry, "TRADE_LICENSE_EXPIRY_CRON"),
    "service_pattern_analysis": (run_service_pattern_analysis, "PATTERN_ANALYSIS_CRON"),
    "seasonal_reminders": (run_seasonal_reminders, "SEASONAL_REMINDERS_CRON"),
    "sitemap_warm": (warm_sitemap, "SITEMAP_WARM_CRON"),
    "sitemap_ping": (ping_search_engines, "SITEMAP_PING_CRON"),
}


def result_to_dict(result: Any) -> dict[str, Any]:
    if is_dataclass(result):
        return asdict(result)
    return {"result": result}


async def run_job(name: str, deps: WorkerDependencies) -> dict[str, Any]:
    """
    Run one job immediately.

    Raises:
        KeyError: Unknown job name
    """
    func, _ = JOBS[name]
    return result_to_dict(await func(deps))


def build_scheduler(deps: WorkerDependencies, settings: Settings | None = None) -> Scheduler:
    settings = settings or get_settings()
    tz = get_timezone()
    scheduler = Scheduler(clock=deps.clock)
    for name, (func, setting_name) in JOBS.items():
        scheduler.register(
            name,
            CronSchedule(getattr(settings, setting_name), tz),
            lambda func=func: func(deps),
        )
    return scheduler
