"""Shared fixtures: a scripted chat capability and a recording sleep."""

import os
from typing import Any, List, Optional

import pytest
import structlog


class FakeChat:
    """ChatCapability returning scripted results in order.

    Each scripted item is returned as the completion text, or raised when it
    is an exception. The last item repeats once the script runs out.
    """

    def __init__(self, *script: Any):
        self.script = list(script)
        self.calls: List[dict] = []

    async def complete(self, system_prompt: str, user_prompt: str, tools: Optional[list] = None) -> Optional[str]:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt, "tools": tools})
        index = min(len(self.calls), len(self.script)) - 1
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def prompts(self) -> List[str]:
        return [call["user_prompt"] for call in self.calls]


class SleepRecorder:
    """Awaitable sleep replacement that records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def fake_chat():
    return FakeChat


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep KUBESAGE_* variables of the developer shell out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("KUBESAGE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop logging configuration bound to streams captured by a single test."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
