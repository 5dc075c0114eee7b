"""Registry of the tools the generator may call."""

import functools
from typing import Any, Callable, Dict, List, Optional

import structlog

from kubesage.plugins.base import BasePlugin

logger = structlog.get_logger(__name__)


class ToolRegistry:
    """Collects plugin tools by name.

    Tools handed to the model are wrapped so that an exception escaping a tool
    comes back to the model as error text instead of aborting generation.
    """

    def __init__(self):
        self._plugins: List[BasePlugin] = []
        self._tools: Dict[str, Callable[..., str]] = {}

    @property
    def plugins(self) -> List[BasePlugin]:
        return list(self._plugins)

    def register(self, plugin: BasePlugin) -> BasePlugin:
        """Register every tool of ``plugin``.

        Raises:
            ValueError: If a tool name is already registered
        """
        tools = plugin.get_tools()
        for tool in tools:
            if tool.__name__ in self._tools:
                raise ValueError(f"Tool '{tool.__name__}' is already registered")
        for tool in tools:
            self._tools[tool.__name__] = tool
        self._plugins.append(plugin)
        logger.debug(f"Registered plugin {plugin.name}", tools=[tool.__name__ for tool in tools])
        return plugin

    def names(self) -> List[str]:
        return sorted(self._tools)

    def get(self, name: str) -> Optional[Callable[..., str]]:
        return self._tools.get(name)

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """Call a tool by name. Never raises; failures are returned as text."""
        tool = self._tools.get(name)
        if tool is None:
            return f"Error: unknown tool '{name}'"
        return self._safe(name, tool)(**(arguments or {}))

    def get_tools(self) -> List[Callable[..., str]]:
        return [self._safe(name, tool) for name, tool in self._tools.items()]

    @staticmethod
    def _safe(name: str, tool: Callable[..., str]) -> Callable[..., str]:
        # wraps() keeps the signature and annotations the tool schema is built from
        @functools.wraps(tool)
        def wrapper(*args, **kwargs):
            logger.debug(f"Invoking tool {name}", arguments=kwargs)
            try:
                return tool(*args, **kwargs)
            except Exception as e:
                logger.error(f"Tool {name} failed", error=str(e))
                return f"Error: {name} failed: {e}"

        return wrapper
