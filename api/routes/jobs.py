"""Admin route to run a lifecycle job on demand."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import AdminUser, get_services
from api.models.responses import JobRunResponse
from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.registry import JOBS, run_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/jobs", tags=["admin"])


@router.get("")
async def list_jobs(user: AdminUser) -> dict[str, list[str]]:
    return {"jobs": sorted(JOBS)}


@router.post("/{job_name}/run", response_model=JobRunResponse)
async def run_job_now(
    job_name: str,
    user: AdminUser,
    deps: Annotated[WorkerDependencies, Depends(get_services)],
):
    if job_name not in JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_name}")
    logger.info(f"Admin {user.id} triggered job {job_name}", extra={"job_name": job_name})
    return {"job_name": job_name, "results": await run_job(job_name, deps)}
