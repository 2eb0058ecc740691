"""
File-based prompt versioning registry.

Prompts live in eventcatalog/agents/prompts/{name}/:
  manifest.yaml   active_version + per-version metadata
  v1.yaml         prompt content (system_prompt + user_prompt, Jinja2 templates)

Usage:
    registry = PromptRegistry()
    system, user = registry.render("event_classification", variables={"title": "Gospel Brunch"})
    system, user = registry.render("ticket_match_arbitration", version="v1", variables={...})
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from jinja2 import StrictUndefined, Template

from eventcatalog.configs.settings import get_settings

logger = logging.getLogger(__name__)


class PromptRegistry:
    """
    Loads prompt manifests and renders Jinja2 templates for the agents.

    Manifests and templates are loaded once and cached per instance.
    Rendering with a missing variable raises jinja2.UndefinedError.
    """

    def __init__(self, prompts_dir: Path | None = None):
        self._dir = prompts_dir or get_settings().PROMPTS_DIR
        self._manifests: dict[str, dict[str, Any]] = {}
        self._templates: dict[str, dict[str, Any]] = {}  # key = "name/version"

    def _load_manifest(self, prompt_name: str) -> dict[str, Any]:
        if prompt_name in self._manifests:
            return self._manifests[prompt_name]

        manifest_path = self._dir / prompt_name / "manifest.yaml"
        if not manifest_path.exists():
            raise FileNotFoundError(f"Prompt manifest not found: {manifest_path}")

        with manifest_path.open(encoding="utf-8") as f:
            manifest = yaml.safe_load(f) or {}

        self._manifests[prompt_name] = manifest
        return manifest

    def _resolve_version(self, prompt_name: str, version: str) -> str:
        """Resolve 'active' to the concrete version string from manifest."""
        if version != "active":
            return version
        return self._load_manifest(prompt_name).get("active_version", "v1")

    def _load_template(self, prompt_name: str, version: str) -> dict[str, Any]:
        cache_key = f"{prompt_name}/{version}"
        if cache_key in self._templates:
            return self._templates[cache_key]

        template_path = self._dir / prompt_name / f"{version}.yaml"
        if not template_path.exists():
            raise FileNotFoundError(f"Prompt template not found: {template_path}")

        with template_path.open(encoding="utf-8") as f:
            template = yaml.safe_load(f) or {}

        self._templates[cache_key] = template
        return template

    def render(
        self,
        prompt_name: str,
        version: str = "active",
        variables: dict[str, Any] | None = None,
    ) -> tuple[str, str]:
        """
        Render a prompt template with the given variables.

        Returns:
            Tuple of (system_prompt, user_prompt) as rendered strings
        """
        resolved_version = self._resolve_version(prompt_name, version)
        template_data = self._load_template(prompt_name, resolved_version)
        variables = variables or {}

        system_rendered = Template(
            template_data.get("system_prompt", ""), undefined=StrictUndefined
        ).render(**variables)
        user_rendered = Template(
            template_data.get("user_prompt", ""), undefined=StrictUndefined
        ).render(**variables)

        logger.debug(f"Rendered prompt {prompt_name}/{resolved_version}")
        return system_rendered.strip(), user_rendered.strip()

    def get_active_version(self, prompt_name: str) -> str:
        """Return the active version string for a prompt."""
        return self._resolve_version(prompt_name, "active")

    def list_prompts(self) -> list[str]:
        """Return all prompt names found in the prompts directory."""
        if not self._dir.exists():
            return []
        return sorted(
            p.name
            for p in self._dir.iterdir()
            if p.is_dir() and (p / "manifest.yaml").exists()
        )


# Singleton
_registry: PromptRegistry | None = None


def get_prompt_registry() -> PromptRegistry:
    global _registry
    if _registry is None:
        _registry = PromptRegistry()
    return _registry
