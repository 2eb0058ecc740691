"""
Anthropic Claude client using Instructor for structured output.

Uses claude-3-5-haiku-latest by default; structured replies go through the
tool_use pattern (instructor.Mode.ANTHROPIC_TOOLS).
"""

import logging
from typing import TypeVar

import anthropic
import instructor
from instructor.exceptions import InstructorRetryException
from pydantic import BaseModel, ValidationError

from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.configs.settings import get_settings
from eventcatalog.errors import (
    ExternalServiceUnavailableError,
    MalformedExternalResponseError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class AnthropicLLMClient(BaseLLMClient):
    """
    Anthropic messages-API client.

    Lazy initialization: the SDK clients are only built once a call is made
    and an API key is available.
    """

    provider = "anthropic"

    def __init__(
        self,
        model_name: str = "claude-3-5-haiku-latest",
        api_key: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens

        settings = get_settings()
        self._api_key: str | None = api_key or (
            settings.ANTHROPIC_API_KEY.get_secret_value()
            if settings.ANTHROPIC_API_KEY
            else None
        )
        self._raw_client: anthropic.AsyncAnthropic | None = None
        self._client = None
        self._last_usage: dict[str, int] = self._empty_usage()

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _get_raw_client(self) -> anthropic.AsyncAnthropic | None:
        if self._raw_client is None and self._api_key:
            self._raw_client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._raw_client

    def _get_client(self):
        if self._client is not None:
            return self._client
        raw = self._get_raw_client()
        if raw is None:
            return None
        self._client = instructor.from_anthropic(
            raw, mode=instructor.Mode.ANTHROPIC_TOOLS
        )
        return self._client

    def _record_usage(self, usage) -> None:
        if usage:
            self._last_usage = {
                "prompt_tokens": usage.input_tokens,
                "completion_tokens": usage.output_tokens,
                "total": usage.input_tokens + usage.output_tokens,
            }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        client = self._get_raw_client()
        if not client:
            raise ExternalServiceUnavailableError(
                self.provider, "ANTHROPIC_API_KEY not set"
            )

        try:
            resp = await client.messages.create(
                model=self.model_name,
                max_tokens=max_tokens or self.max_tokens,
                temperature=temperature if temperature is not None else self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.AnthropicError as e:
            logger.warning(f"AnthropicLLMClient call failed: {e}")
            raise ExternalServiceUnavailableError(self.provider, str(e)) from e

        self._record_usage(resp.usage)
        text_blocks = [block.text for block in resp.content if block.type == "text"]
        return "".join(text_blocks)

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        output_schema: type[T],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> T:
        """
        Structured output via the tool_use pattern.

        Instructor injects the Pydantic schema as a tool definition and
        validates the tool_use block against it.
        """
        client = self._get_client()
        if not client:
            raise ExternalServiceUnavailableError(
                self.provider, "ANTHROPIC_API_KEY not set"
            )

        try:
            result, completion = await client.messages.create_with_completion(
                model=self.model_name,
                response_model=output_schema,
                max_tokens=max_tokens or self.max_tokens,
                temperature=(
                    temperature if temperature is not None else self.temperature
                ),
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.AnthropicError as e:
            logger.warning(f"AnthropicLLMClient call failed: {e}")
            raise ExternalServiceUnavailableError(self.provider, str(e)) from e
        except (InstructorRetryException, ValidationError) as e:
            logger.warning(f"AnthropicLLMClient structured output failed: {e}")
            raise MalformedExternalResponseError(
                self.provider, f"reply does not match {output_schema.__name__}"
            ) from e

        self._record_usage(completion.usage)
        return result

    def get_token_usage(self) -> dict[str, int]:
        return self._last_usage
