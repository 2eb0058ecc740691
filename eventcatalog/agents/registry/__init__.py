from eventcatalog.agents.registry.prompt_registry import (
    PromptRegistry,
    get_prompt_registry,
)

__all__ = ["PromptRegistry", "get_prompt_registry"]
