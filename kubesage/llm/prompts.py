"""Prompt templates for the generator and the evaluator.

Templates are .md files in the prompts/ directory rendered with Jinja2, so
they can be customized without code changes by pointing
``llm_prompt_templates_dir`` at a directory holding same-named files.
"""

from pathlib import Path
from typing import Dict, Optional

from jinja2 import StrictUndefined, Template, UndefinedError

GENERATOR_SYSTEM = "generator_system"
GENERATOR_RETRY = "generator_retry"
EVALUATOR_SYSTEM = "evaluator_system"
EVALUATOR_USER = "evaluator_user"


class PromptTemplateLoader:
    """Loader for prompt templates from files with caching and fallback support.

    Attributes:
        templates_dir: Path to the built-in templates directory
        custom_dir: Optional path to custom templates directory
        _cache: Cache of loaded templates
    """

    def __init__(self, custom_dir: Optional[str] = None):
        package_dir = Path(__file__).parent.parent
        self.templates_dir = package_dir / "prompts"
        self.custom_dir = Path(custom_dir) if custom_dir else None
        self._cache: Dict[str, str] = {}

    def load_template(self, template_name: str) -> str:
        """Load a template from file.

        Searches the custom directory first, then the built-in directory.

        Raises:
            FileNotFoundError: If template file is not found in any location
        """
        if template_name in self._cache:
            return self._cache[template_name]

        candidates = []
        if self.custom_dir:
            candidates.append(self.custom_dir / f"{template_name}.md")
        candidates.append(self.templates_dir / f"{template_name}.md")

        for path in candidates:
            if path.exists():
                content = path.read_text(encoding="utf-8")
                self._cache[template_name] = content
                return content

        raise FileNotFoundError(
            f"Template '{template_name}' not found in custom dir ({self.custom_dir}) "
            f"or built-in dir ({self.templates_dir})"
        )

    def render(self, template_name: str, **kwargs) -> str:
        """Load a template and render it with Jinja2.

        Raises:
            FileNotFoundError: If template file is not found
            KeyError: If a variable used by the template is not provided
        """
        template = Template(self.load_template(template_name), undefined=StrictUndefined)
        try:
            return template.render(**kwargs).strip()
        except UndefinedError as e:
            raise KeyError(f"Missing variable for template '{template_name}': {e.message}") from e

    def clear_cache(self):
        """Clear the template cache."""
        self._cache.clear()

    def list_available_templates(self) -> list[str]:
        """List all available template names (without .md extension)."""
        templates = set()
        for directory in (self.templates_dir, self.custom_dir):
            if directory and directory.exists():
                for file in directory.glob("*.md"):
                    if file.name != "README.md":
                        templates.add(file.stem)
        return sorted(templates)
