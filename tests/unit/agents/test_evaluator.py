"""Unit tests for the evaluative call."""

from unittest.mock import Mock

import pytest

from kubesage.agents.evaluator import Evaluator
from kubesage.agents.model import MAX_RETRIES, UNAVAILABLE_VERDICT
from kubesage.enums import Rating


class TestEvaluator:
    """Tests for Evaluator.evaluate."""

    @pytest.mark.asyncio
    async def test_pass_verdict(self, fake_chat, sleep):
        chat = fake_chat("RATING: PASS\nFEEDBACK: Complete answer.")
        evaluator = Evaluator(chat, "judge rules", sleep=sleep)

        verdict = await evaluator.evaluate("list pods", "<div>pods</div>")

        assert verdict.passed
        assert verdict.feedback == "Complete answer."
        assert chat.calls[0]["system_prompt"] == "judge rules"
        assert chat.calls[0]["tools"] is None

    @pytest.mark.asyncio
    async def test_prompt_contains_request_and_draft(self, fake_chat, sleep):
        chat = fake_chat("RATING: PASS")
        evaluator = Evaluator(chat, "judge rules", sleep=sleep)

        await evaluator.evaluate("list pods", "<div>pods</div>")

        assert chat.prompts[0] == (
            "User request: list pods\n\n"
            "Response to evaluate: <div>pods</div>\n\n"
            "Evaluate if this response properly addresses the user's request."
        )

    @pytest.mark.asyncio
    async def test_needs_improvement(self, fake_chat, sleep):
        chat = fake_chat("RATING: NEEDS_IMPROVEMENT\nFEEDBACK: Use HTML.")

        verdict = await Evaluator(chat, "s", sleep=sleep).evaluate("q", "draft")

        assert verdict.rating is Rating.NEEDS_IMPROVEMENT
        assert verdict.feedback == "Use HTML."

    @pytest.mark.asyncio
    async def test_recovers_after_failure(self, fake_chat, sleep):
        chat = fake_chat(TimeoutError(), "RATING: NEEDS_IMPROVEMENT\nFEEDBACK: more")

        verdict = await Evaluator(chat, "s", sleep=sleep).evaluate("q", "draft")

        assert not verdict.passed
        assert not verdict.synthetic
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_synthetic_pass(self, fake_chat, sleep):
        chat = fake_chat(TimeoutError("read timed out"))

        verdict = await Evaluator(chat, "s", attempts=3, sleep=sleep).evaluate("q", "draft")

        assert verdict.passed
        assert verdict.synthetic
        assert verdict.raw == UNAVAILABLE_VERDICT
        assert len(chat.calls) == 3
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_empty_verdicts_fall_back_to_pass(self, fake_chat, sleep):
        chat = fake_chat("")

        verdict = await Evaluator(chat, "s", attempts=2, sleep=sleep).evaluate("q", "draft")

        assert verdict.synthetic
        assert len(chat.calls) == 2

    @pytest.mark.asyncio
    async def test_default_attempts(self, fake_chat, sleep):
        chat = fake_chat(TimeoutError("read timed out"))
        evaluator = Evaluator(chat, "s", sleep=sleep)

        await evaluator.evaluate("q", "draft")

        assert evaluator.attempts == MAX_RETRIES
        assert len(chat.calls) == MAX_RETRIES

    @pytest.mark.asyncio
    async def test_broken_prompt_template_falls_back_to_pass(self, fake_chat, sleep):
        chat = fake_chat("RATING: NEEDS_IMPROVEMENT\nFEEDBACK: unreachable")
        prompts = Mock()
        prompts.render.side_effect = KeyError("response")

        verdict = await Evaluator(chat, "s", prompts=prompts, sleep=sleep).evaluate("q", "draft")

        assert verdict.passed
        assert verdict.synthetic
        assert chat.calls == []
