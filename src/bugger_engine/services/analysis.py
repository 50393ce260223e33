"""Analysis pipeline: one claimed job per cycle, from queue to analyzed bug."""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from bugger_engine.core import lifecycle
from bugger_engine.core.jobs import JobQueue, JobType
from bugger_engine.models import Bug, JobRecord
from bugger_engine.schemas import BugRecord, JobPayload
from bugger_engine.services.context import discover
from bugger_engine.services.providers.base import AIProvider, AnalysisError, ProviderError

logger = logging.getLogger(__name__)

ContextFinder = Callable[[str, Union[str, Path]], List[str]]


class CycleOutcome(str, Enum):
    """What a single pipeline cycle did."""
    IDLE = "idle"  # nothing queued, or lost the claim race
    DONE = "done"
    SKIPPED = "skipped"  # bug was already analyzed
    ERROR = "error"


class PayloadError(AnalysisError):
    """Job payload does not name a bug."""


class BugNotFoundError(AnalysisError):
    """Job payload names a bug that does not exist."""


def parse_payload(job: JobRecord) -> str:
    """Return the bug id referenced by an ANALYZE_BUG job."""
    try:
        payload = JobPayload.model_validate(job.payload)
    except ValidationError as e:
        raise PayloadError(f"Job payload missing bugId: {e.errors()[0]['msg']}") from e
    return payload.bug_id


class AnalysisPipeline:
    """Runs claimed ANALYZE_BUG jobs through context discovery and an AI provider.

    The pipeline keeps no state between cycles; everything it needs is the
    session factory, the provider and the code context root it was built with.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        provider: AIProvider,
        context_root: Union[str, Path] = ".",
        provider_timeout: float = 30.0,
        context_finder: ContextFinder = discover,
    ):
        self.session_maker = session_maker
        self.provider = provider
        self.context_root = context_root
        self.provider_timeout = provider_timeout
        self.context_finder = context_finder
        self.queue = JobQueue(session_maker)

    async def run_cycle(self) -> CycleOutcome:
        """Claim and fully settle at most one job. Never raises."""
        try:
            job = await self.queue.claim_next(JobType.ANALYZE_BUG)
        except Exception as e:
            logger.exception("Failed to claim next job: %s", e)
            return CycleOutcome.ERROR

        if job is None:
            return CycleOutcome.IDLE

        logger.info("Processing job %s for bug analysis", job.id)
        bug_id: Optional[str] = None
        try:
            bug_id = parse_payload(job)
            return await self._process(job, bug_id)
        except PayloadError as e:
            logger.error("Job %s has a malformed payload %r: %s", job.id, job.payload, e)
            await self._record_failure(job.id, None, str(e))
        except BugNotFoundError as e:
            logger.error("Job %s references a missing bug: %s", job.id, e)
            await self._record_failure(job.id, None, str(e))
        except Exception as e:
            logger.exception("Error processing job %s: %s", job.id, e)
            await self._record_failure(job.id, bug_id, _describe(e))
        return CycleOutcome.ERROR

    async def _load_bug(self, bug_id: str) -> Bug:
        async with self.session_maker() as db:
            result = await db.execute(
                select(Bug)
                .options(selectinload(Bug.project))
                .where(Bug.id == bug_id)
            )
            bug = result.scalar_one_or_none()
        if bug is None:
            raise BugNotFoundError(f"Bug {bug_id} not found")
        return bug

    async def _process(self, job: JobRecord, bug_id: str) -> CycleOutcome:
        bug = await self._load_bug(bug_id)

        if lifecycle.is_already_analyzed(bug):
            logger.info("Bug %s already analyzed, marking job %s as done", bug_id, job.id)
            await self.queue.complete(job.id)
            return CycleOutcome.SKIPPED

        if bug.status == lifecycle.BugStatus.ERROR.value:
            raise AnalysisError(f"Bug {bug_id} is in error state; reset it to queued before requeueing")

        try:
            record = BugRecord.from_model(bug)
        except ValidationError as e:
            raise AnalysisError(f"Bug {bug_id} has malformed telemetry: {e}") from e

        await lifecycle.mark_analyzing(self.session_maker, bug_id)

        code_context = await self._discover_context(bug.url)
        logger.info("Found %d relevant files for context", len(code_context))

        try:
            result = await asyncio.wait_for(
                self.provider.analyze(record, code_context),
                timeout=self.provider_timeout,
            )
            if not result.analysis or not result.analysis.strip():
                raise ProviderError(f"{self.provider.name} returned an empty analysis")
        except asyncio.TimeoutError:
            message = f"AI provider {self.provider.name} timed out after {self.provider_timeout:.0f}s"
            logger.error("Job %s: %s", job.id, message)
            await self._record_failure(job.id, bug_id, message)
            return CycleOutcome.ERROR
        except Exception as e:
            logger.error("Job %s: AI provider %s failed: %s", job.id, self.provider.name, e)
            await self._record_failure(job.id, bug_id, _describe(e))
            return CycleOutcome.ERROR

        # Bug is written before the job is completed
        try:
            stored = await lifecycle.mark_analyzed(
                self.session_maker,
                bug_id,
                analysis=result.analysis,
                diff=result.diff,
                confidence=result.confidence,
                provider=result.provider,
            )
        except Exception as e:
            logger.exception("Failed to store analysis for bug %s: %s", bug_id, e)
            await self._record_failure(job.id, bug_id, f"Failed to store analysis: {_describe(e)}")
            return CycleOutcome.ERROR

        if not stored:
            await self._record_failure(job.id, bug_id, f"Bug {bug_id} could not be moved to analyzed")
            return CycleOutcome.ERROR

        try:
            await self.queue.complete(job.id)
        except Exception as e:
            logger.exception("Bug %s analyzed but job %s could not be completed: %s", bug_id, job.id, e)

        logger.info(
            "Job %s completed; bug %s analyzed with confidence %.2f",
            job.id, bug_id, lifecycle.normalize_confidence(result.confidence),
        )
        return CycleOutcome.DONE

    async def _discover_context(self, bug_url: str) -> List[str]:
        try:
            return await asyncio.to_thread(self.context_finder, bug_url, self.context_root)
        except Exception as e:
            logger.warning("Code context discovery failed for %s: %s", bug_url, e)
            return []

    async def _record_failure(self, job_id: str, bug_id: Optional[str], message: str) -> None:
        """Mark job (and bug, when known) as error. Secondary failures are only logged."""
        await self.queue.fail(job_id, message)
        if bug_id is None:
            return
        try:
            await lifecycle.mark_error(self.session_maker, bug_id)
        except Exception as e:
            logger.exception("Failed to update bug %s error status: %s", bug_id, e)


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__

