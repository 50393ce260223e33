"""Core components for Bugger Engine."""

from bugger_engine.core.config import settings
from bugger_engine.core.database import get_db
from bugger_engine.core.jobs import JobQueue, JobStatus, JobType

__all__ = ["settings", "get_db", "JobQueue", "JobStatus", "JobType"]
