"""Job endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bugger_engine.api.v1.deps import get_current_project
from bugger_engine.core.database import get_db
from bugger_engine.models import Bug, JobRecord, Project

router = APIRouter()


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    project: Project = Depends(get_current_project),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Get job status for one of the project's bugs."""
    job = await db.get(JobRecord, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    bug_id = (job.payload or {}).get("bugId")
    owned = await db.execute(
        select(Bug.id).where(Bug.id == bug_id).where(Bug.project_id == project.id)
    )
    if owned.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Job not found")

    return job.to_dict()
