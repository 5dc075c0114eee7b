"""Base plugin class for kubesage plugins."""
from abc import abstractmethod
from typing import Callable, List


class BasePlugin:
    """Base class for kubesage plugins.

    Subclasses set ``name`` and ``instructions`` (shown to the model in the
    generator system prompt) and return their tool callables from get_tools().
    """
    name: str = ""
    instructions: str = ""

    @abstractmethod
    def get_tools(self) -> List[Callable[..., str]]:
        """Returns a list of tools provided by the plugin."""
