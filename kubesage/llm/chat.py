"""Chat capability used by the generator and the evaluator."""
from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

import structlog
from agent_framework import ChatAgent

logger = structlog.get_logger(__name__)


@runtime_checkable
class ChatCapability(Protocol):
    """A chat-style model call: system instructions + user content (+ tools) -> text."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: Optional[Sequence[Callable[..., Any]]] = None,
    ) -> Optional[str]:
        ...


class AgentChat:
    """ChatCapability backed by an agent_framework agent.

    A fresh agent is built for every call on top of the shared chat client and
    no conversation thread is kept, so one instance can serve concurrent
    requests.

    Usage:
        chat = AgentChat(LLMClient(config).get_client(), name="generator")
        text = await chat.complete(system_prompt, "list pods in default", tools)
    """

    def __init__(self, chat_client, name: str = "kubesage"):
        self.chat_client = chat_client
        self.name = name

    def build_agent(self, system_prompt: str, tools: Optional[Sequence[Callable[..., Any]]] = None) -> ChatAgent:
        return ChatAgent(
            name=self.name,
            instructions=system_prompt,
            chat_client=self.chat_client,
            tools=list(tools or []),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: Optional[Sequence[Callable[..., Any]]] = None,
    ) -> Optional[str]:
        agent = self.build_agent(system_prompt, tools)
        logger.debug(f"[Agent::{self.name}] Starting execution", tools=len(tools or []))
        response = await agent.run(user_prompt)
        text = response.text if response is not None else None
        logger.debug(f"[Agent::{self.name}] Execution completed", chars=len(text or ""))
        return text
