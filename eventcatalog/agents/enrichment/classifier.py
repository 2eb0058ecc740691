"""
EventClassifier: primary LLM classification of one catalog event.

The reply is requested as a structured Classification. Out-of-enum categories become
OTHER and missing or unknown confidence becomes medium, so a sloppy reply
still yields a usable result. Provider failures and schema violations raise
and are handled by the caller's fallback path.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.agents.llm.provider_router import get_llm_client
from eventcatalog.agents.registry.prompt_registry import (
    PromptRegistry,
    get_prompt_registry,
)
from eventcatalog.configs.settings import get_settings
from eventcatalog.errors import ExternalServiceUnavailableError
from eventcatalog.schemas.event import ConfidenceTier, EventCategory

logger = logging.getLogger(__name__)


class Classification(BaseModel):
    category: EventCategory = EventCategory.OTHER
    performer: Optional[str] = None
    description: str = ""
    confidence: ConfidenceTier = ConfidenceTier.MEDIUM

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> EventCategory:
        return EventCategory.coerce(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> ConfidenceTier:
        if isinstance(v, str):
            try:
                return ConfidenceTier(v.strip().lower())
            except ValueError:
                pass
        return ConfidenceTier.MEDIUM

    @field_validator("performer", mode="before")
    @classmethod
    def blank_performer(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    @field_validator("description", mode="before")
    @classmethod
    def text_description(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""


@dataclass
class ClassificationRequest:
    """Everything the classifier is told about one event."""

    title: str
    venue_name: str
    date: str
    description: str | None = None
    url: str | None = None
    current_category: EventCategory | None = None
    classification_tags: list[str] = field(default_factory=list)


class EventClassifier:
    """Renders the classification prompt and validates the reply."""

    prompt_name = "event_classification"

    def __init__(
        self,
        llm: BaseLLMClient | None = None,
        registry: PromptRegistry | None = None,
    ):
        settings = get_settings()
        self.llm = llm or get_llm_client(
            provider=settings.LLM_PROVIDER,
            model_name=settings.CLASSIFIER_MODEL,
            temperature=0.3,
            max_tokens=200,
        )
        self.registry = registry or get_prompt_registry()

    @property
    def is_available(self) -> bool:
        return self.llm.is_available

    async def classify(self, request: ClassificationRequest) -> Classification:
        """
        Raises:
            ExternalServiceUnavailableError: no provider configured or the call failed
            MalformedExternalResponseError: the reply did not fit Classification
        """
        if not self.llm.is_available:
            raise ExternalServiceUnavailableError(self.llm.provider, "no API key configured")

        current = request.current_category.value if request.current_category else None
        system_prompt, user_prompt = self.registry.render(
            self.prompt_name,
            variables={
                "title": request.title,
                "venue_name": request.venue_name,
                "date": request.date,
                "description": request.description,
                "url": request.url,
                "current_category": current,
                "classification_tags": request.classification_tags,
            },
        )

        result = await self.llm.complete_structured(
            system_prompt, user_prompt, output_schema=Classification
        )
        logger.debug(
            f"Classified '{request.title}' as {result.category.value} "
            f"({result.confidence.value}, performer={result.performer})"
        )
        return result
