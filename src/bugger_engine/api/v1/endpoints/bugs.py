"""Bug report endpoints."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bugger_engine.api.v1.deps import get_current_project
from bugger_engine.core.database import get_db
from bugger_engine.core.jobs import JobQueue, JobType
from bugger_engine.core.lifecycle import BugStatus
from bugger_engine.models import Bug, Project
from bugger_engine.schemas import (
    BugSeverity,
    CreateBugPayload,
    CreateBugResponse,
    JobPayload,
    encode_console_logs,
    encode_network_errors,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", status_code=201, response_model=CreateBugResponse)
async def create_bug(
    payload: CreateBugPayload,
    project: Project = Depends(get_current_project),
    db: AsyncSession = Depends(get_db),
) -> CreateBugResponse:
    """Store a bug report and queue it for analysis."""
    if payload.project_public_key != project.public_key:
        raise HTTPException(status_code=401, detail="Authentication required")

    bug = Bug(
        project_id=project.id,
        title=payload.title,
        steps=payload.steps,
        expected=payload.expected,
        actual=payload.actual,
        severity=payload.severity.value,
        url=payload.url,
        user_agent=payload.user_agent,
        viewport=payload.viewport.model_dump(),
        console_logs=encode_console_logs(payload.console_logs),
        network_errors=encode_network_errors(payload.network_errors),
        screenshot_data_url=payload.screenshot_data_url or None,
        status=BugStatus.QUEUED.value,
    )
    db.add(bug)
    await db.flush()

    # Same transaction as the bug
    JobQueue.enqueue(db, JobType.ANALYZE_BUG, JobPayload(bug_id=bug.id).to_json())
    await db.commit()

    logger.info("Bug created: %s for project: %s", bug.id, project.name)
    return CreateBugResponse(id=bug.id, status=BugStatus.QUEUED.value)


@router.get("")
async def list_bugs(
    status: Optional[BugStatus] = Query(None),
    severity: Optional[BugSeverity] = Query(None),
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    project: Project = Depends(get_current_project),
    db: AsyncSession = Depends(get_db),
) -> list:
    """List the project's bugs, newest first."""
    query = select(Bug).where(Bug.project_id == project.id)

    if status:
        query = query.where(Bug.status == status.value)
    if severity:
        query = query.where(Bug.severity == severity.value)
    if from_:
        query = query.where(Bug.created_at >= _naive_utc(from_))
    if to:
        query = query.where(Bug.created_at <= _naive_utc(to))

    result = await db.execute(query.order_by(Bug.created_at.desc()))
    return [bug.to_dict(project.public_key) for bug in result.scalars().all()]


@router.get("/{bug_id}")
async def get_bug(
    bug_id: str,
    project: Project = Depends(get_current_project),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Get a single bug of the project."""
    result = await db.execute(
        select(Bug).where(Bug.id == bug_id).where(Bug.project_id == project.id)
    )
    bug = result.scalar_one_or_none()
    if not bug:
        raise HTTPException(status_code=404, detail="Bug not found")
    return bug.to_dict(project.public_key)


def _naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
