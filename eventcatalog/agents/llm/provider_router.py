"""
Provider router: selects the correct LLM client by provider name.

Supported providers:
  "openai"     GPT via the OpenAI SDK (default)
  "anthropic"  Claude via the Anthropic SDK
"""

import logging

from eventcatalog.agents.llm.base_llm_client import BaseLLMClient

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
}


def get_llm_client(
    provider: str = "openai",
    model_name: str | None = None,
    temperature: float = 0.1,
    max_tokens: int = 500,
) -> BaseLLMClient:
    """
    Factory: returns the appropriate LLM client for the given provider.

    Args:
        provider: "openai" | "anthropic"
        model_name: Model identifier; provider default when omitted
        temperature: Sampling temperature
        max_tokens: Max response tokens

    Returns:
        Concrete BaseLLMClient instance (may report is_available=False when
        the provider's API key is missing)
    """
    provider = (provider or "openai").lower().strip()

    if provider == "anthropic":
        from eventcatalog.agents.llm.anthropic_client import AnthropicLLMClient

        return AnthropicLLMClient(
            model_name=model_name or DEFAULT_MODELS["anthropic"],
            temperature=temperature,
            max_tokens=max_tokens,
        )

    if provider != "openai":
        logger.warning(
            f"Unknown LLM provider '{provider}'. Supported: openai, anthropic. Defaulting to openai."
        )

    from eventcatalog.agents.llm.openai_client import OpenAILLMClient

    return OpenAILLMClient(
        model_name=model_name or DEFAULT_MODELS["openai"],
        temperature=temperature,
        max_tokens=max_tokens,
    )
