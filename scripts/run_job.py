#!/usr/bin/env python3
"""
Run one lifecycle job immediately, outside the scheduler.

Usage:
    python scripts/run_job.py direct_lead_expiry
    python scripts/run_job.py service_pattern_analysis --homeowner-id <uuid>
    python scripts/run_job.py --list
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from database.connection import dispose_engine
from homezy.workers.dependencies import build_worker_dependencies
from homezy.workers.registry import JOBS, result_to_dict, run_job
from homezy.workers.service_pattern_analysis import run_service_pattern_analysis
from shared.logging_config import configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Homezy lifecycle job now")
    parser.add_argument("job", nargs="?", choices=sorted(JOBS), help="Job to run")
    parser.add_argument("--list", action="store_true", help="List available jobs and exit")
    parser.add_argument(
        "--homeowner-id",
        type=UUID,
        help="Restrict service_pattern_analysis to one homeowner",
    )
    args = parser.parse_args(argv)
    if not args.list and args.job is None:
        parser.error("a job name is required")
    return args


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.list:
        for name, (_, setting_name) in sorted(JOBS.items()):
            print(f"{name:35s} {setting_name}")
        return 0

    configure_logging("homezy-worker")
    deps = build_worker_dependencies()
    try:
        if args.job == "service_pattern_analysis" and args.homeowner_id:
            results = result_to_dict(await run_service_pattern_analysis(deps, args.homeowner_id))
        else:
            results = await run_job(args.job, deps)
        await deps.notifications.drain()
    finally:
        await dispose_engine()

    print(json.dumps({"job_name": args.job, "results": results}, indent=2))
    return 1 if results.get("errors") else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
