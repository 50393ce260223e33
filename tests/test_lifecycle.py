"""Tests for the bug status lifecycle."""

from types import SimpleNamespace

import pytest

from bugger_engine.core import lifecycle
from bugger_engine.core.lifecycle import BugStatus
from bugger_engine.models import Bug


class TestNormalization:
    """Tests for confidence and patch normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (0.9, 0.9),
            (1.0, 1.0),
            (0.05, 0.1),
            (-0.2, 0.1),
            (85, 0.85),
            ("0.7", 0.7),
            ("not a number", 0.5),
            (None, 0.5),
            (float("nan"), 0.5),
        ],
    )
    def test_confidence(self, raw, expected):
        """Confidence lands in [0.1, 1.0], percentages are scaled."""
        assert lifecycle.normalize_confidence(raw) == pytest.approx(expected)

    def test_confidence_above_one_stays_in_range(self):
        """1.5 is read as a percentage and clamped, never above 1."""
        value = lifecycle.normalize_confidence(1.5)
        assert 0.1 <= value <= 1.0

    @pytest.mark.parametrize("raw", ["NONE", "none", "None", "  none \n", "", None])
    def test_no_patch_becomes_none(self, raw):
        assert lifecycle.normalize_patch_diff(raw) is None

    def test_real_diff_kept_verbatim(self):
        diff = "--- a/src/app.ts\n+++ b/src/app.ts\n@@ -1 +1 @@\n-foo\n+bar\n"
        assert lifecycle.normalize_patch_diff(diff) == diff


class TestTransitions:
    """Tests for the bug transition table."""

    def test_forward_path(self):
        assert lifecycle.can_transition("queued", "analyzing")
        assert lifecycle.can_transition("analyzing", "analyzed")
        assert lifecycle.can_transition("analyzing", "error")
        assert lifecycle.can_transition("queued", "analyzed")

    def test_terminal_states(self):
        for target in BugStatus:
            assert not lifecycle.can_transition("analyzed", target.value)
            assert not lifecycle.can_transition("error", target.value)

    def test_no_going_back(self):
        assert not lifecycle.can_transition("analyzing", "queued")

    def test_is_already_analyzed(self):
        assert lifecycle.is_already_analyzed(SimpleNamespace(status="analyzed", ai_analysis="done"))
        assert not lifecycle.is_already_analyzed(SimpleNamespace(status="analyzed", ai_analysis="  "))
        assert not lifecycle.is_already_analyzed(SimpleNamespace(status="queued", ai_analysis="done"))


class TestStatusWrites:
    """Tests for conditional status writes."""

    @pytest.mark.asyncio
    async def test_mark_analyzed_persists_normalized_results(self, session_maker, submit_bug, fetch):
        ids = await submit_bug()

        stored = await lifecycle.mark_analyzed(
            session_maker, ids["bug_id"], analysis="Null check missing", diff="none", confidence=85, provider="stub"
        )

        assert stored is True
        bug = await fetch(Bug, ids["bug_id"])
        assert bug.status == "analyzed"
        assert bug.ai_analysis == "Null check missing"
        assert bug.ai_patch_diff is None
        assert bug.confidence == pytest.approx(0.85)
        assert bug.ai_provider == "stub"

    @pytest.mark.asyncio
    async def test_mark_analyzed_requires_analysis(self, session_maker, submit_bug, fetch):
        ids = await submit_bug()

        with pytest.raises(ValueError):
            await lifecycle.mark_analyzed(session_maker, ids["bug_id"], analysis=" ", diff="NONE", confidence=0.5, provider="stub")

        assert (await fetch(Bug, ids["bug_id"])).status == "queued"

    @pytest.mark.asyncio
    async def test_error_is_terminal(self, session_maker, submit_bug, fetch):
        ids = await submit_bug()
        assert await lifecycle.mark_error(session_maker, ids["bug_id"]) is True

        assert await lifecycle.mark_analyzing(session_maker, ids["bug_id"]) is False
        assert await lifecycle.mark_analyzed(
            session_maker, ids["bug_id"], analysis="late", diff="NONE", confidence=0.5, provider="stub"
        ) is False
        assert (await fetch(Bug, ids["bug_id"])).status == "error"

    @pytest.mark.asyncio
    async def test_missing_bug_is_not_written(self, session_maker):
        assert await lifecycle.mark_error(session_maker, "does-not-exist") is False
