"""Health check file shared by all lifecycle jobs."""

import json
import logging
import time
from datetime import UTC, datetime
from pathlib import Path

from shared.config import get_settings

logger = logging.getLogger(__name__)

HEALTH_FILE_NAME = "lifecycle_worker_health.json"


async def update_health_check(
    job_name: str,
    last_run: datetime,
    status: str,
    processed: int,
    errors: int,
) -> None:
    """
    Update health check file with job statistics.

    Args:
        job_name: Name of the job
        last_run: Timestamp of job completion
        status: Health status ('healthy' or 'unhealthy')
        processed: Number of items processed
        errors: Number of errors encountered
    """
    health_dir = Path(get_settings().HEALTH_CHECK_DIR)
    health_dir.mkdir(parents=True, exist_ok=True)
    health_file = health_dir / HEALTH_FILE_NAME
    temp_file = health_dir / f"{HEALTH_FILE_NAME}.{time.time_ns()}.tmp"

    health_data = {}
    if health_file.exists():
        try:
            health_data = json.loads(health_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable health file, starting fresh: {e}")

    health_data[job_name] = {
        "last_run": last_run.isoformat(),
        "status": status,
        "processed": processed,
        "errors": errors,
    }

    all_healthy = all(
        job.get("status") == "healthy"
        for job in health_data.values()
        if isinstance(job, dict)
    )
    health_data["overall_status"] = "healthy" if all_healthy else "unhealthy"
    health_data["last_updated"] = datetime.now(UTC).isoformat()

    try:
        temp_file.write_text(json.dumps(health_data, indent=2))
        temp_file.replace(health_file)
        logger.debug(f"Health check file updated: {health_file}")
    except OSError as e:
        logger.error(f"Failed to write health check file: {e}", exc_info=True)
