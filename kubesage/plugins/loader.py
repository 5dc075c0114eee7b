from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


class PluginInfoLoader:
    def __init__(self):
        package_dir = Path(__file__).parent.parent
        self.prompts_dir = package_dir

    def load(self, plugin_name: str) -> str:
        prompt_file = self.prompts_dir / f"plugins/{plugin_name}.md"
        try:
            with open(prompt_file, "r", encoding="utf-8") as file:
                return file.read()
        except FileNotFoundError:
            logger.debug(f"No instructions found for plugin '{plugin_name}'")
            return ""
