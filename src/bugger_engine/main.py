"""Bugger Engine - Main FastAPI Application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bugger_engine.api.v1.router import api_router
from bugger_engine.core.config import settings
from bugger_engine.core.database import init_db, close_db, isoformat_utc
from bugger_engine.core.logging import setup_logging
from bugger_engine.core.worker import build_scheduler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting Bugger Engine v%s", settings.VERSION)

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    scheduler = None
    if settings.RUN_WORKER:
        scheduler = build_scheduler(settings)
        scheduler.start()
        logger.info("Analysis worker started (provider: %s)", scheduler.pipeline.provider.name)
    app.state.scheduler = scheduler

    yield

    # Cleanup
    logger.info("Shutting down Bugger Engine...")
    if scheduler is not None:
        await scheduler.stop()
        await scheduler.pipeline.provider.close()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Bugger Engine",
        description="Bug report intake and AI analysis backend",
        version=settings.VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # CORS middleware; the widget posts from arbitrary sites
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["content-type", "x-bugger-key"],
    )

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "version": settings.VERSION,
            "timestamp": isoformat_utc(datetime.utcnow()),
        }

    # Include API router
    app.include_router(api_router, prefix="/api")

    return app


# Create app instance
app = create_app()


def main():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "bugger_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
