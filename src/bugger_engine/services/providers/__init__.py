"""AI providers and provider selection."""

import logging

from bugger_engine.core.config import Settings
from bugger_engine.services.providers.base import (
    AIProvider,
    AnalysisError,
    AnalysisResult,
    ProviderError,
)
from bugger_engine.services.providers.fallback import FallbackProvider
from bugger_engine.services.providers.gemini import GeminiProvider

logger = logging.getLogger(__name__)


def select_provider(config: Settings) -> AIProvider:
    """Pick the provider once at startup.

    Gemini is used whenever an API key is configured, unless the fallback
    provider was requested explicitly.
    """
    provider = (config.AI_PROVIDER or "").lower()
    if config.GEMINI_API_KEY and provider != "fallback":
        logger.info("Using Gemini provider (model=%s)", config.MODEL_ID)
        return GeminiProvider(
            api_key=config.GEMINI_API_KEY,
            model_id=config.MODEL_ID,
            timeout=config.PROVIDER_TIMEOUT,
        )
    logger.info("Using fallback provider (no AI credentials configured)")
    return FallbackProvider()


__all__ = [
    "AIProvider",
    "AnalysisError",
    "AnalysisResult",
    "FallbackProvider",
    "GeminiProvider",
    "ProviderError",
    "select_provider",
]
