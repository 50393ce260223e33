"""Shared endpoint dependencies."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bugger_engine.core.database import get_db
from bugger_engine.models import Project

API_KEY_HEADER = "x-bugger-key"


async def get_current_project(
    x_bugger_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
    db: AsyncSession = Depends(get_db),
) -> Project:
    """Resolve the project from its secret key."""
    if not x_bugger_key:
        raise HTTPException(status_code=401, detail="Authentication required")

    result = await db.execute(select(Project).where(Project.secret_key == x_bugger_key))
    project = result.scalar_one_or_none()
    if not project:
        raise HTTPException(status_code=401, detail="Authentication required")
    return project
