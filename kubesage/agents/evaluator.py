"""Evaluative call: a judge model rates a draft and explains what to fix."""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

from kubesage.agents.model import MAX_RETRIES, EvaluationVerdict
from kubesage.llm.chat import ChatCapability
from kubesage.llm.prompts import EVALUATOR_USER, PromptTemplateLoader
from kubesage.utils.retry import BackoffPolicy, retry_async

logger = structlog.get_logger(__name__)


class Evaluator:
    """Judges drafts. Never raises: when the judge stays unreachable after
    ``attempts`` tries, a synthetic PASS verdict is returned instead."""

    def __init__(
        self,
        chat: ChatCapability,
        system_prompt: str,
        prompts: Optional[PromptTemplateLoader] = None,
        attempts: int = MAX_RETRIES,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.chat = chat
        self.system_prompt = system_prompt
        self.prompts = prompts or PromptTemplateLoader()
        self.attempts = attempts
        self.backoff = backoff or BackoffPolicy()
        self.sleep = sleep

    async def evaluate(self, request: str, draft: str) -> EvaluationVerdict:
        async def attempt() -> Optional[str]:
            return await self.chat.complete(self.system_prompt, prompt)

        try:
            prompt = self.prompts.render(EVALUATOR_USER, request=request, response=draft)
            raw = await retry_async(
                attempt,
                attempts=self.attempts,
                backoff=self.backoff,
                sleep=self.sleep,
                label="Evaluation",
            )
        except Exception as e:
            logger.warning(
                "Evaluation unavailable, continuing with current response",
                error=str(e),
                attempts=self.attempts,
            )
            return EvaluationVerdict.unavailable()

        verdict = EvaluationVerdict.parse(raw)
        logger.debug("Evaluation verdict", rating=verdict.rating.value, feedback=verdict.feedback)
        return verdict
