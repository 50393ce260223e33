"""Gemini provider over the Generative Language REST API."""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from bugger_engine.core.lifecycle import DEFAULT_CONFIDENCE, NO_PATCH, normalize_confidence
from bugger_engine.schemas import BugRecord
from bugger_engine.services.prompt import build_prompt
from bugger_engine.services.providers.base import AIProvider, AnalysisResult, ProviderError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"

GENERATION_CONFIG = {
    "temperature": 0.3,
    "maxOutputTokens": 2000,
    "topP": 0.8,
    "topK": 40,
}

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)
_SECTION_TEMPLATE = r"## {name}\s*\n(.*?)(?=\n## |\Z)"


def _section(content: str, name: str) -> Optional[str]:
    match = re.search(_SECTION_TEMPLATE.format(name=name), content, re.IGNORECASE | re.DOTALL)
    return match.group(1).strip() if match else None


def parse_response(content: str) -> AnalysisResult:
    """Parse the ``## Analysis`` / ``## Patch`` / ``## Confidence`` sections.

    Missing or malformed sections degrade: the raw text becomes the
    analysis, the patch becomes NONE and confidence defaults to 0.5.
    """
    analysis = _section(content, "Analysis") or ""
    diff = NO_PATCH
    confidence: Any = DEFAULT_CONFIDENCE

    patch = _section(content, "Patch")
    if patch and patch.lower() != "none":
        diff = patch

    confidence_text = _section(content, "Confidence")
    if confidence_text:
        match = re.search(r"-?\d+(?:\.\d+)?", confidence_text)
        if match:
            confidence = match.group(0)

    if not analysis:
        analysis = content.strip()

    return AnalysisResult(
        analysis=analysis,
        diff=diff,
        confidence=normalize_confidence(confidence),
        provider=GeminiProvider.name,
    )


def screenshot_part(data_url: Optional[str]) -> Optional[Dict[str, Any]]:
    """Build an ``inline_data`` part from an image data URL, if valid."""
    if not data_url:
        return None
    match = _DATA_URL_RE.match(data_url)
    if not match:
        logger.warning("Invalid data URL format for screenshot")
        return None
    mime_type, data = match.groups()
    if not mime_type.startswith("image/"):
        logger.warning("Invalid MIME type for screenshot: %s", mime_type)
        return None
    return {"inline_data": {"mime_type": mime_type, "data": data}}


def extract_text(data: Dict[str, Any]) -> str:
    """Pull the candidate text out of a generateContent response."""
    if data.get("error"):
        error = data["error"]
        raise ProviderError(f"Gemini API error: {error.get('message')} ({error.get('code')})")

    candidates = data.get("candidates") or []
    if not candidates or not candidates[0].get("content"):
        raise ProviderError("Invalid response structure from Gemini API")

    candidate = candidates[0]
    if candidate.get("finishReason") == "MAX_TOKENS":
        logger.warning("Gemini response truncated due to token limit")

    content = candidate["content"]
    parts = content.get("parts") or []
    if parts and parts[0].get("text"):
        return parts[0]["text"]
    if content.get("text"):
        return content["text"]
    raise ProviderError("No text content found in Gemini API response")


class GeminiProvider(AIProvider):
    """Analyzes bugs with Google Gemini."""

    name = "gemini"

    def __init__(self, api_key: str, model_id: str = DEFAULT_MODEL, timeout: float = 30.0):
        if not api_key:
            raise ValueError("Gemini provider requires an API key")
        self.api_key = api_key
        self.model_id = model_id or DEFAULT_MODEL
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def endpoint(self) -> str:
        return f"{API_BASE_URL}/{self.model_id}:generateContent"

    def build_request(self, bug: BugRecord, code_context: Sequence[str]) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        # Image goes before the text prompt
        image = screenshot_part(bug.screenshot_data_url)
        if image:
            parts.append(image)
        parts.append({"text": build_prompt(bug, code_context)})
        return {
            "contents": [{"parts": parts}],
            "generationConfig": GENERATION_CONFIG,
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json"},
            )
        return self._session

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        async with session.post(self.endpoint, params={"key": self.api_key}, json=body) as resp:
            text = await resp.text()
            if resp.status >= 400:
                raise ProviderError(f"Gemini API failed with status {resp.status}: {text[:500]}")
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise ProviderError(f"Gemini API returned invalid JSON: {e}") from e

    async def analyze(self, bug: BugRecord, code_context: Sequence[str]) -> AnalysisResult:
        body = self.build_request(bug, code_context)
        logger.info(
            "Sending bug %s to Gemini (model=%s, context=%d files, screenshot=%s)",
            bug.id, self.model_id, len(code_context), bool(bug.screenshot_data_url),
        )

        try:
            data = await self._post(body)
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Gemini API request timed out after {self.timeout:.0f}s") from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"Gemini API request failed: {e}") from e

        content = extract_text(data)
        logger.debug("Raw Gemini response: %s", content)

        result = parse_response(content)
        logger.info(
            "Parsed Gemini result for bug %s: analysis=%d chars, diff=%d chars, confidence=%.2f",
            bug.id, len(result.analysis), len(result.diff), result.confidence,
        )
        return result

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
