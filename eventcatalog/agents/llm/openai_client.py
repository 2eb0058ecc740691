"""
OpenAI client using Instructor for structured output.

Uses gpt-4o-mini by default (configurable via CLASSIFIER_MODEL / ARBITRATION_MODEL).
"""

import logging
from typing import TypeVar

import instructor
import openai
from instructor.exceptions import InstructorRetryException
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.configs.settings import get_settings
from eventcatalog.errors import (
    ExternalServiceUnavailableError,
    MalformedExternalResponseError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class OpenAILLMClient(BaseLLMClient):
    """
    OpenAI client using Instructor for constrained structured output.

    Lazy initialization: the SDK clients are only built once a call is made
    and an API key is available.
    """

    provider = "openai"

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        api_key: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens

        settings = get_settings()
        self._api_key: str | None = api_key or (
            settings.OPENAI_API_KEY.get_secret_value()
            if settings.OPENAI_API_KEY
            else None
        )
        self._raw_client: AsyncOpenAI | None = None
        self._client = None
        self._last_usage: dict[str, int] = self._empty_usage()

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _get_raw_client(self) -> AsyncOpenAI | None:
        if self._raw_client is None and self._api_key:
            self._raw_client = AsyncOpenAI(api_key=self._api_key)
        return self._raw_client

    def _get_client(self):
        if self._client is not None:
            return self._client
        raw = self._get_raw_client()
        if raw is None:
            return None
        self._client = instructor.from_openai(raw, mode=instructor.Mode.TOOLS)
        return self._client

    def _record_usage(self, usage) -> None:
        if usage:
            self._last_usage = {
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total": usage.total_tokens,
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
            raise ExternalServiceUnavailableError(self.provider, "OPENAI_API_KEY not set")

        try:
            resp = await client.chat.completions.create(
                model=self.model_name,
                temperature=temperature if temperature is not None else self.temperature,
                max_tokens=max_tokens or self.max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.OpenAIError as e:
            logger.warning(f"OpenAILLMClient call failed: {e}")
            raise ExternalServiceUnavailableError(self.provider, str(e)) from e

        self._record_usage(resp.usage)
        return resp.choices[0].message.content or ""

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        output_schema: type[T],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> T:
        client = self._get_client()
        if not client:
            raise ExternalServiceUnavailableError(self.provider, "OPENAI_API_KEY not set")

        try:
            result, completion = await client.chat.completions.create_with_completion(
                model=self.model_name,
                response_model=output_schema,
                temperature=(
                    temperature if temperature is not None else self.temperature
                ),
                max_tokens=max_tokens or self.max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.OpenAIError as e:
            logger.warning(f"OpenAILLMClient call failed: {e}")
            raise ExternalServiceUnavailableError(self.provider, str(e)) from e
        except (InstructorRetryException, ValidationError) as e:
            logger.warning(f"OpenAILLMClient structured output failed: {e}")
            raise MalformedExternalResponseError(
                self.provider, f"reply does not match {output_schema.__name__}"
            ) from e

        self._record_usage(completion.usage)
        return result

    def get_token_usage(self) -> dict[str, int]:
        return self._last_usage
