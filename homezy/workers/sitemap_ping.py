"""
Sitemap jobs.

- warm_sitemap: fetch the public sitemap every 6 hours so the site
  regenerates its cached copy (SITEMAP_WARM_CRON)
- ping_search_engines: tell Google and Bing the sitemap changed, every
  12 hours (SITEMAP_PING_CRON)

Failures are logged and counted; nothing is retried until the next run.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check
from shared.config import get_settings

logger = logging.getLogger(__name__)

WARM_JOB_NAME = "sitemap_warm"
PING_JOB_NAME = "sitemap_ping"

WARM_TIMEOUT_SECONDS = 30.0
PING_TIMEOUT_SECONDS = 10.0

SEARCH_ENGINE_PING_URLS = {
    "google": "https://www.google.com/ping",
    "bing": "https://www.bing.com/ping",
}


@dataclass
class SitemapResults:
    succeeded: int = 0
    errors: int = 0


def sitemap_url() -> str:
    return f"{get_settings().SITE_URL.rstrip('/')}/sitemap.xml"


async def warm_sitemap(deps: WorkerDependencies) -> SitemapResults:
    results = SitemapResults()
    url = sitemap_url()
    logger.info(f"Warming sitemap cache: {url}", extra={"job_name": WARM_JOB_NAME})

    try:
        async with httpx.AsyncClient(timeout=WARM_TIMEOUT_SECONDS, transport=deps.http_transport) as client:
            response = await client.get(url)
            response.raise_for_status()
        results.succeeded += 1
        logger.info("Sitemap cache warmed successfully")
    except httpx.HTTPError as e:
        results.errors += 1
        logger.error(f"Sitemap cache warming failed: {e}")

    await update_health_check(
        WARM_JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.succeeded,
        results.errors,
    )
    return results


async def ping_search_engines(deps: WorkerDependencies) -> SitemapResults:
    results = SitemapResults()
    params = {"sitemap": sitemap_url()}

    async with httpx.AsyncClient(timeout=PING_TIMEOUT_SECONDS, transport=deps.http_transport) as client:
        for engine, ping_url in SEARCH_ENGINE_PING_URLS.items():
            logger.info(f"Notifying {engine} of sitemap update", extra={"job_name": PING_JOB_NAME})
            try:
                response = await client.get(ping_url, params=params)
                response.raise_for_status()
                results.succeeded += 1
                logger.info(f"{engine} notified successfully")
            except httpx.HTTPError as e:
                results.errors += 1
                logger.error(f"{engine} notification failed: {e}")

    await update_health_check(
        PING_JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.succeeded,
        results.errors,
    )
    return results
