"""SQLAlchemy models for Bugger Engine."""

from bugger_engine.models.project import Project
from bugger_engine.models.bug import Bug
from bugger_engine.models.job import JobRecord

__all__ = [
    "Project",
    "Bug",
    "JobRecord",
]
