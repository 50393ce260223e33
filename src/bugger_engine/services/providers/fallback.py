"""Deterministic provider used when no AI credentials are configured."""

from typing import Sequence

from bugger_engine.core.lifecycle import MIN_CONFIDENCE, NO_PATCH
from bugger_engine.schemas import BugRecord
from bugger_engine.services.providers.base import AIProvider, AnalysisResult


class FallbackProvider(AIProvider):
    """Returns a fixed-shape analysis without any external call."""

    name = "fallback"

    async def analyze(self, bug: BugRecord, code_context: Sequence[str]) -> AnalysisResult:
        analysis = (
            "## Bug Analysis (Fallback)\n\n"
            f"**Issue:** {bug.title}\n\n"
            f"**Description:** {bug.actual}\n\n"
            "**Likely Cause:** Unable to analyze due to missing API configuration.\n\n"
            "**Recommendation:** Please check your AI provider configuration and API keys."
        )
        return AnalysisResult(
            analysis=analysis,
            diff=NO_PATCH,
            confidence=MIN_CONFIDENCE,
            provider=self.name,
        )
