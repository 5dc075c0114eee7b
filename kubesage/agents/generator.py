"""Generative call: produce a draft answer, retried with exponential backoff."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Sequence

import structlog

from kubesage.agents.model import MAX_ITERATIONS
from kubesage.llm.chat import ChatCapability
from kubesage.utils.retry import BackoffPolicy, retry_async

logger = structlog.get_logger(__name__)


class Generator:
    """Drafts responses with a fixed system prompt and the cluster tool set.

    Empty model output counts as a failed attempt. After ``attempts`` failed
    attempts the last failure is re-raised to the caller.
    """

    def __init__(
        self,
        chat: ChatCapability,
        system_prompt: str,
        tools: Optional[Sequence[Callable[..., Any]]] = None,
        attempts: int = MAX_ITERATIONS,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.chat = chat
        self.system_prompt = system_prompt
        self.tools = list(tools or [])
        self.attempts = attempts
        self.backoff = backoff or BackoffPolicy()
        self.sleep = sleep

    async def generate(self, prompt: str) -> str:
        logger.debug("Generating draft", prompt=prompt)

        async def attempt() -> Optional[str]:
            return await self.chat.complete(self.system_prompt, prompt, self.tools)

        return await retry_async(
            attempt,
            attempts=self.attempts,
            backoff=self.backoff,
            sleep=self.sleep,
            label="Generation",
        )
