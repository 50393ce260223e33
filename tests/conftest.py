"""Pytest configuration and fixtures."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from bugger_engine.core.database import create_session_maker, init_db  # noqa: E402
from bugger_engine.core.jobs import JobQueue, JobStatus, JobType  # noqa: E402
from bugger_engine.models import Bug, JobRecord, Project  # noqa: E402
from bugger_engine.services.providers.base import AIProvider, AnalysisResult  # noqa: E402


class StubProvider(AIProvider):
    """Provider returning a canned result, or raising a canned error."""

    name = "stub"

    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[BaseException] = None):
        self.result = result or AnalysisResult(analysis="ok", diff="NONE", confidence=0.9, provider="stub")
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.on_call: Optional[Callable] = None

    async def analyze(self, bug, code_context):
        self.calls.append({"bug": bug, "code_context": list(code_context)})
        if self.on_call is not None:
            await self.on_call(bug)
        if self.error is not None:
            raise self.error
        return self.result


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Temporary SQLite database with all tables created."""
    db_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    await init_db(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def queue(session_maker):
    return JobQueue(session_maker)


@pytest_asyncio.fixture
async def project(session_maker):
    async with session_maker() as db:
        record = Project(name="Demo", public_key="public_demo_key", secret_key="secret_demo_key")
        db.add(record)
        await db.commit()
        await db.refresh(record)
        return record


@pytest.fixture
def sample_bug_fields():
    """Sample bug report as persisted by the API."""
    return {
        "title": "Checkout button does nothing",
        "steps": "1. Open /checkout\n2. Click Pay",
        "expected": "Payment form submits",
        "actual": "TypeError in console, nothing happens",
        "severity": "high",
        "url": "https://shop.example.com/checkout/payment",
        "user_agent": "Mozilla/5.0 (X11; Linux x86_64)",
        "viewport": {"width": 1280, "height": 800},
        "console_logs": [
            {
                "level": "error",
                "message": "TypeError: cannot read properties of undefined (reading 'total')",
                "timestamp": "2026-10-19T09:00:00Z",
            },
        ],
        "network_errors": [
            {
                "url": "https://shop.example.com/api/cart",
                "status": 500,
                "method": "GET",
                "timestamp": "2026-10-19T09:00:01Z",
            },
        ],
    }


@pytest.fixture
def sample_create_payload():
    """Sample widget submission payload."""
    return {
        "title": "Test Bug",
        "steps": "1. Open page\n2. Click button",
        "expected": "Button should work",
        "actual": "Button throws error",
        "severity": "medium",
        "url": "http://localhost:3000/test",
        "userAgent": "test-agent",
        "viewport": {"width": 1280, "height": 800},
        "projectPublicKey": "public_demo_key",
    }


@pytest.fixture
def submit_bug(session_maker, project, sample_bug_fields):
    """Create a queued bug and its job in one transaction, like the API does."""

    async def _submit(**overrides) -> Dict[str, str]:
        fields = {"status": "queued", **sample_bug_fields, **overrides}
        async with session_maker() as db:
            bug = Bug(project_id=project.id, **fields)
            db.add(bug)
            await db.flush()
            job = JobQueue.enqueue(db, JobType.ANALYZE_BUG, {"bugId": bug.id})
            await db.commit()
            return {"bug_id": bug.id, "job_id": job.id}

    return _submit


@pytest.fixture
def insert_job(session_maker):
    """Insert a job row directly."""

    async def _insert(
        payload: Dict[str, Any],
        status: JobStatus = JobStatus.QUEUED,
        created_at: Optional[datetime] = None,
        job_type: str = JobType.ANALYZE_BUG.value,
    ) -> str:
        async with session_maker() as db:
            job = JobRecord(type=job_type, payload=payload, status=status.value)
            if created_at is not None:
                job.created_at = created_at
            db.add(job)
            await db.commit()
            return job.id

    return _insert


@pytest.fixture
def fetch(session_maker):
    """Reload a row by primary key."""

    async def _fetch(model, key):
        async with session_maker() as db:
            return await db.get(model, key)

    return _fetch
