"""Create the demo project used by the example widget."""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bugger_engine.core.config import settings
from bugger_engine.core.database import async_session_maker, close_db, init_db
from bugger_engine.core.logging import setup_logging
from bugger_engine.models import Project

logger = logging.getLogger(__name__)


async def seed_demo_project(
    session_maker: async_sessionmaker[AsyncSession],
    public_key: str,
    secret_key: str,
    name: str = "Demo",
) -> Project:
    """Return the demo project, creating it if missing."""
    async with session_maker() as db:
        result = await db.execute(select(Project).where(Project.public_key == public_key))
        project = result.scalar_one_or_none()
        if project:
            logger.info("Demo project already exists: %s", project.id)
            return project

        project = Project(name=name, public_key=public_key, secret_key=secret_key)
        db.add(project)
        await db.commit()
        await db.refresh(project)
        logger.info("Demo project created: %s (public key: %s)", project.id, public_key)
        return project


async def _seed() -> None:
    await init_db()
    try:
        await seed_demo_project(async_session_maker, settings.DEMO_PUBLIC_KEY, settings.DEMO_SECRET_KEY)
    finally:
        await close_db()


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(_seed())


if __name__ == "__main__":
    main()
