"""Bug status lifecycle.

A bug is created ``queued`` by the API and afterwards only the analysis
pipeline moves it forward::

    new -> queued -> analyzing -> analyzed
                              \\-> error

``analyzed`` and ``error`` are terminal. Writes are conditional on the
current status, so a bug never leaves a terminal state through this module.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bugger_engine.models.bug import Bug

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
DEFAULT_CONFIDENCE = 0.5
NO_PATCH = "NONE"


class BugStatus(str, Enum):
    """Bug status enumeration."""
    NEW = "new"
    QUEUED = "queued"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    ERROR = "error"


BUG_TRANSITIONS: Dict[BugStatus, frozenset] = {
    BugStatus.NEW: frozenset({BugStatus.QUEUED, BugStatus.ANALYZING, BugStatus.ANALYZED, BugStatus.ERROR}),
    BugStatus.QUEUED: frozenset({BugStatus.ANALYZING, BugStatus.ANALYZED, BugStatus.ERROR}),
    BugStatus.ANALYZING: frozenset({BugStatus.ANALYZED, BugStatus.ERROR}),
    BugStatus.ANALYZED: frozenset(),
    BugStatus.ERROR: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """Return True if a bug may move from ``current`` to ``target``."""
    try:
        return BugStatus(target) in BUG_TRANSITIONS[BugStatus(current)]
    except ValueError:
        return False


def _sources_for(target: BugStatus) -> list:
    return [status.value for status, targets in BUG_TRANSITIONS.items() if target in targets]


def is_already_analyzed(bug: Any) -> bool:
    """True when the bug carries a completed analysis."""
    return bug.status == BugStatus.ANALYZED.value and bool(bug.ai_analysis and bug.ai_analysis.strip())


def normalize_confidence(value: Any) -> float:
    """Coerce a provider confidence into [0.1, 1.0].

    Values above 1 are read as percentages (85 -> 0.85). Anything that is
    not a number falls back to 0.5.
    """
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        confidence = DEFAULT_CONFIDENCE
    if confidence > 1:
        confidence = confidence / 100
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def normalize_patch_diff(diff: Optional[str]) -> Optional[str]:
    """Map the "no patch" sentinel (any case) and blanks to None."""
    if diff is None or not diff.strip():
        return None
    if diff.strip().upper() == NO_PATCH:
        return None
    return diff


async def _transition(
    session_maker: async_sessionmaker[AsyncSession],
    bug_id: str,
    target: BugStatus,
    **values: Any,
) -> bool:
    async with session_maker() as db:
        result = await db.execute(
            update(Bug)
            .where(Bug.id == bug_id)
            .where(Bug.status.in_(_sources_for(target)))
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    if result.rowcount != 1:
        logger.warning("Bug %s not moved to %s (missing or already settled)", bug_id, target.value)
        return False
    return True


async def mark_analyzing(session_maker: async_sessionmaker[AsyncSession], bug_id: str) -> bool:
    """Surface that analysis has started for polling clients."""
    return await _transition(session_maker, bug_id, BugStatus.ANALYZING)


async def mark_analyzed(
    session_maker: async_sessionmaker[AsyncSession],
    bug_id: str,
    analysis: str,
    diff: Optional[str],
    confidence: Any,
    provider: str,
) -> bool:
    """Persist analysis results and move the bug to ``analyzed``."""
    if not analysis or not analysis.strip():
        raise ValueError(f"Refusing to mark bug {bug_id} analyzed without analysis text")

    return await _transition(
        session_maker,
        bug_id,
        BugStatus.ANALYZED,
        ai_analysis=analysis,
        ai_patch_diff=normalize_patch_diff(diff),
        confidence=normalize_confidence(confidence),
        ai_provider=provider,
    )


async def mark_error(session_maker: async_sessionmaker[AsyncSession], bug_id: str) -> bool:
    """Move the bug to ``error``."""
    return await _transition(session_maker, bug_id, BugStatus.ERROR)
