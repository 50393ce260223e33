"""AI provider contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from bugger_engine.schemas import BugRecord


class AnalysisError(Exception):
    """Base class for failures that end a job in ``error``."""


class ProviderError(AnalysisError):
    """The provider could not produce an analysis (transport, auth, API error)."""


@dataclass
class AnalysisResult:
    """Result returned by an AI provider."""
    analysis: str  # Markdown, target <= 250 words
    diff: str  # Unified diff or "NONE"
    confidence: float  # Clamped to [0.1, 1.0]
    provider: str


class AIProvider(ABC):
    """Analyzes a bug report given candidate source paths."""

    name: str = "unknown"

    @abstractmethod
    async def analyze(self, bug: BugRecord, code_context: Sequence[str]) -> AnalysisResult:
        """Return an analysis or raise ``ProviderError``."""

    async def close(self) -> None:
        """Release any resources held by the provider."""
        return None
