"""Tests for AI providers, prompt building and provider selection."""

from datetime import datetime

import aiohttp
import pytest

from bugger_engine.core.config import Settings
from bugger_engine.schemas import BugRecord
from bugger_engine.services.prompt import build_prompt
from bugger_engine.services.providers import (
    FallbackProvider,
    GeminiProvider,
    ProviderError,
    select_provider,
)
from bugger_engine.services.providers.gemini import extract_text, parse_response, screenshot_part


@pytest.fixture
def bug_record(sample_bug_fields):
    fields = {key: value for key, value in sample_bug_fields.items()}
    return BugRecord(
        id="cbug1",
        status="analyzing",
        created_at=datetime(2026, 10, 19, 9, 0, 0),
        project_public_key="public_demo_key",
        **fields,
    )


class TestParseResponse:
    """Tests for Gemini response parsing."""

    def test_structured_sections(self):
        content = (
            "## Analysis\n- `cart.total` is read before the cart loads\n\n"
            "## Patch\n--- a/src/cart.ts\n+++ b/src/cart.ts\n@@ -1 +1 @@\n-a\n+b\n\n"
            "## Confidence\n0.8\n"
        )

        result = parse_response(content)

        assert result.analysis == "- `cart.total` is read before the cart loads"
        assert result.diff.startswith("--- a/src/cart.ts")
        assert result.confidence == pytest.approx(0.8)
        assert result.provider == "gemini"

    def test_patch_none_any_case(self):
        result = parse_response("## Analysis\nSomething\n\n## Patch\nnone\n\n## Confidence\n0.3")

        assert result.diff == "NONE"
        assert result.confidence == pytest.approx(0.3)

    def test_percentage_confidence(self):
        result = parse_response("## Analysis\nx\n## Confidence\n85")

        assert result.confidence == pytest.approx(0.85)

    def test_unstructured_text_degrades(self):
        """Malformed but successful responses keep the raw text."""
        result = parse_response("The button handler throws because cart is undefined.")

        assert result.analysis == "The button handler throws because cart is undefined."
        assert result.diff == "NONE"
        assert result.confidence == pytest.approx(0.5)

    def test_confidence_clamped_low(self):
        result = parse_response("## Analysis\nx\n## Confidence\n0.01")

        assert result.confidence == pytest.approx(0.1)


class TestExtractText:
    """Tests for reading the generateContent envelope."""

    def test_reads_first_part(self):
        data = {"candidates": [{"content": {"parts": [{"text": "hello"}]}}]}
        assert extract_text(data) == "hello"

    def test_api_error_raises(self):
        with pytest.raises(ProviderError, match="quota"):
            extract_text({"error": {"message": "quota exceeded", "code": 429}})

    def test_missing_candidates_raises(self):
        with pytest.raises(ProviderError):
            extract_text({"candidates": []})

    def test_missing_text_raises(self):
        with pytest.raises(ProviderError):
            extract_text({"candidates": [{"content": {"parts": [{}]}}]})


class TestScreenshotPart:
    """Tests for screenshot inlining."""

    def test_image_data_url(self):
        part = screenshot_part("data:image/png;base64,iVBORw0KGgo=")
        assert part == {"inline_data": {"mime_type": "image/png", "data": "iVBORw0KGgo="}}

    @pytest.mark.parametrize("value", [None, "", "not-a-data-url", "data:text/plain;base64,aGk="])
    def test_rejects_non_images(self, value):
        assert screenshot_part(value) is None


class TestGeminiProvider:
    """Tests for the Gemini provider with the transport stubbed out."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            GeminiProvider(api_key="")

    def test_request_puts_screenshot_before_prompt(self, bug_record):
        bug_record.screenshot_data_url = "data:image/jpeg;base64,/9j/4AAQ"
        provider = GeminiProvider(api_key="key")

        body = provider.build_request(bug_record, ["src/cart.ts"])

        parts = body["contents"][0]["parts"]
        assert parts[0]["inline_data"]["mime_type"] == "image/jpeg"
        assert "src/cart.ts" in parts[1]["text"]
        assert body["generationConfig"]["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_analyze_parses_reply(self, bug_record):
        provider = GeminiProvider(api_key="key")

        async def fake_post(body):
            return {"candidates": [{"content": {"parts": [{"text": "## Analysis\nok\n## Patch\nNONE\n## Confidence\n0.9"}]}}]}

        provider._post = fake_post

        result = await provider.analyze(bug_record, [])

        assert result.analysis == "ok"
        assert result.diff == "NONE"
        assert result.confidence == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_transport_errors_raise(self, bug_record):
        provider = GeminiProvider(api_key="key")

        async def failing_post(body):
            raise aiohttp.ClientConnectionError("connection refused")

        provider._post = failing_post

        with pytest.raises(ProviderError, match="connection refused"):
            await provider.analyze(bug_record, [])


class TestFallbackProvider:
    """Tests for the no-credentials provider."""

    @pytest.mark.asyncio
    async def test_is_deterministic(self, bug_record):
        provider = FallbackProvider()

        first = await provider.analyze(bug_record, ["a.ts"])
        second = await provider.analyze(bug_record, [])

        assert first == second
        assert first.provider == "fallback"
        assert first.diff == "NONE"
        assert first.confidence == pytest.approx(0.1)
        assert bug_record.title in first.analysis


class TestSelectProvider:
    """Tests for startup provider selection."""

    def test_gemini_with_key(self):
        provider = select_provider(Settings(GEMINI_API_KEY="key", AI_PROVIDER="gemini", PROVIDER_TIMEOUT=12))

        assert isinstance(provider, GeminiProvider)
        assert provider.timeout == 12

    def test_fallback_without_key(self):
        assert isinstance(select_provider(Settings(GEMINI_API_KEY=None)), FallbackProvider)

    def test_explicit_fallback_wins(self):
        assert isinstance(select_provider(Settings(GEMINI_API_KEY="key", AI_PROVIDER="fallback")), FallbackProvider)


class TestPrompt:
    """Tests for prompt rendering."""

    def test_includes_bug_details_and_context(self, bug_record):
        prompt = build_prompt(bug_record, ["src/cart.ts", "src/pages/checkout.tsx"])

        assert "**Title:** Checkout button does nothing" in prompt
        assert "- error: TypeError" in prompt
        assert "- GET https://shop.example.com/api/cart: 500" in prompt
        assert "src/pages/checkout.tsx" in prompt
        assert "## Confidence" in prompt

    def test_context_is_capped(self, bug_record):
        paths = [f"src/file{i}.ts" for i in range(40)]

        prompt = build_prompt(bug_record, paths)

        assert "src/file29.ts" in prompt
        assert "src/file30.ts" not in prompt

    def test_no_telemetry(self, bug_record):
        bug_record.console_logs = None
        bug_record.network_errors = None

        prompt = build_prompt(bug_record, [])

        assert "**Console Logs:**\nNone" in prompt
        assert "**Network Errors:**\nNone" in prompt
