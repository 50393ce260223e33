"""Job queue backed by the jobs table."""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bugger_engine.models.job import JobRecord

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Job status enumeration."""
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class JobType(str, Enum):
    """Job type enumeration."""
    ANALYZE_BUG = "ANALYZE_BUG"


# Legal transitions. processing -> queued is only used by the stale-claim sweep.
JOB_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.ERROR, JobStatus.QUEUED}),
    JobStatus.DONE: frozenset(),
    JobStatus.ERROR: frozenset(),
}


def _sources_for(target: JobStatus) -> List[str]:
    """Statuses a job may be in to move to ``target``."""
    return [status.value for status, targets in JOB_TRANSITIONS.items() if target in targets]


class JobQueue:
    """Claims and settles jobs with conditional updates.

    Every state change is a single ``UPDATE ... WHERE status IN (<sources>)``
    with the sources taken from ``JOB_TRANSITIONS``; a change whose
    precondition no longer holds matches no row and is reported as a no-op
    instead of being applied.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @staticmethod
    def enqueue(
        db: AsyncSession,
        job_type: JobType,
        payload: Dict[str, Any],
    ) -> JobRecord:
        """Add a queued job to the caller's session.

        The caller commits, so the job lands in the same transaction as
        whatever it refers to.
        """
        record = JobRecord(
            type=job_type.value,
            payload=payload,
            status=JobStatus.QUEUED.value,
        )
        db.add(record)
        return record

    async def claim_next(self, job_type: JobType) -> Optional[JobRecord]:
        """Claim the oldest queued job of ``job_type``.

        Returns None when the queue is empty or another consumer claimed the
        candidate first.
        """
        claimable = _sources_for(JobStatus.PROCESSING)

        async with self._session_maker() as db:
            result = await db.execute(
                select(JobRecord.id)
                .where(JobRecord.status.in_(claimable))
                .where(JobRecord.type == job_type.value)
                .order_by(JobRecord.created_at, JobRecord.id)
                .limit(1)
            )
            job_id = result.scalar_one_or_none()
            if job_id is None:
                return None

            now = datetime.utcnow()
            claimed = await db.execute(
                update(JobRecord)
                .where(JobRecord.id == job_id)
                .where(JobRecord.status.in_(claimable))
                .values(
                    status=JobStatus.PROCESSING.value,
                    claimed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

            if claimed.rowcount != 1:
                logger.debug("Job %s was claimed by another consumer", job_id)
                return None

            record = await db.get(JobRecord, job_id, populate_existing=True)
            logger.info("Claimed job %s (%s)", job_id, job_type.value)
            return record

    async def _settle(
        self,
        job_id: str,
        target: JobStatus,
        error: Optional[str] = None,
    ) -> bool:
        values: Dict[str, Any] = {"status": target.value, "updated_at": datetime.utcnow()}
        if error is not None:
            values["error"] = error

        async with self._session_maker() as db:
            result = await db.execute(
                update(JobRecord)
                .where(JobRecord.id == job_id)
                .where(JobRecord.status.in_(_sources_for(target)))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return result.rowcount == 1

    async def complete(self, job_id: str) -> bool:
        """Move a job from processing to done.

        Returns False (and changes nothing) when the job is not processing,
        so repeated calls are harmless.
        """
        if await self._settle(job_id, JobStatus.DONE):
            logger.info("Job %s completed", job_id)
            return True
        logger.debug("Job %s not in processing, complete ignored", job_id)
        return False

    async def fail(self, job_id: str, error_message: str) -> bool:
        """Move a job from processing to error, recording the message.

        Never raises: a failure to record the error is logged and reported
        as False.
        """
        try:
            if await self._settle(job_id, JobStatus.ERROR, error=error_message or "Unknown error"):
                logger.warning("Job %s failed: %s", job_id, error_message)
                return True
            logger.debug("Job %s not in processing, fail ignored", job_id)
            return False
        except Exception as e:
            logger.exception("Failed to update job %s error status: %s", job_id, e)
            return False

    async def requeue_stale(self, older_than: timedelta) -> int:
        """Return processing jobs claimed before ``now - older_than`` to the queue.

        Opt-in recovery for claims abandoned by a crashed worker.
        """
        cutoff = datetime.utcnow() - older_than
        async with self._session_maker() as db:
            result = await db.execute(
                update(JobRecord)
                .where(JobRecord.status.in_(_sources_for(JobStatus.QUEUED)))
                .where(JobRecord.claimed_at.is_not(None))
                .where(JobRecord.claimed_at < cutoff)
                .values(
                    status=JobStatus.QUEUED.value,
                    claimed_at=None,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

        count = result.rowcount or 0
        if count:
            logger.warning("Requeued %d stale job(s) claimed before %s", count, cutoff.isoformat())
        return count
