"""
Unit tests for the event classifier.

A scripted BaseLLMClient stands in for the provider; prompts come from the
bundled registry.
"""

import asyncio

import pytest

from eventcatalog.agents.enrichment.classifier import (
    Classification,
    ClassificationRequest,
    EventClassifier,
)
from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.agents.registry.prompt_registry import PromptRegistry
from eventcatalog.errors import ExternalServiceUnavailableError, MalformedExternalResponseError
from eventcatalog.schemas.event import ConfidenceTier, EventCategory

# =============================================================================
# FIXTURES
# =============================================================================


class ScriptedLLM(BaseLLMClient):
    """Returns a fixed payload as the requested schema and records the prompts."""

    provider = "scripted"

    def __init__(self, payload=None, available: bool = True, error: Exception | None = None):
        self.payload = payload if payload is not None else {}
        self.available = available
        self.error = error
        self.prompts: list[tuple[str, str]] = []
        self.schemas: list[type] = []

    @property
    def is_available(self) -> bool:
        return self.available

    async def complete(self, system_prompt, user_prompt, temperature=None, max_tokens=None):
        return ""

    async def complete_structured(
        self, system_prompt, user_prompt, output_schema, temperature=None, max_tokens=None
    ):
        self.prompts.append((system_prompt, user_prompt))
        self.schemas.append(output_schema)
        if self.error:
            raise self.error
        return output_schema.model_validate(self.payload)

    def get_token_usage(self):
        return self._empty_usage()


REQUEST = ClassificationRequest(
    title="Gospel Brunch",
    venue_name="Stubb's",
    date="Sunday, December 14, 2025",
    current_category=EventCategory.OTHER,
    classification_tags=["Music"],
)


def classify(payload=None, **kwargs) -> Classification:
    llm = ScriptedLLM(payload, **kwargs)
    classifier = EventClassifier(llm=llm, registry=PromptRegistry())
    return asyncio.run(classifier.classify(REQUEST))


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestClassificationModel:
    """Coercion of sloppy model output."""

    def test_valid_payload(self):
        result = Classification.model_validate(
            {
                "category": "CONCERT",
                "performer": "Bob Dylan",
                "description": " Folk legend. ",
                "confidence": "high",
            }
        )
        assert result.category == EventCategory.CONCERT
        assert result.performer == "Bob Dylan"
        assert result.description == "Folk legend."
        assert result.confidence == ConfidenceTier.HIGH

    def test_out_of_enum_category_is_other(self):
        assert Classification.model_validate({"category": "PODCAST"}).category == (
            EventCategory.OTHER
        )

    def test_unknown_confidence_is_medium(self):
        assert Classification.model_validate({"confidence": "very"}).confidence == (
            ConfidenceTier.MEDIUM
        )
        assert Classification.model_validate({"confidence": None}).confidence == (
            ConfidenceTier.MEDIUM
        )

    def test_blank_performer_is_none(self):
        assert Classification.model_validate({"performer": "  "}).performer is None
        assert Classification.model_validate({"performer": 7}).performer is None

    def test_missing_fields_default(self):
        result = Classification.model_validate({})
        assert result.category == EventCategory.OTHER
        assert result.description == ""


class TestEventClassifier:
    """End-to-end classify() with a scripted provider."""

    def test_classify_requests_classification_schema(self):
        llm = ScriptedLLM(
            {
                "category": "concert",
                "performer": None,
                "description": "Live gospel with brunch.",
                "confidence": "medium",
            }
        )
        result = asyncio.run(EventClassifier(llm=llm, registry=PromptRegistry()).classify(REQUEST))

        assert llm.schemas == [Classification]
        assert result.category == EventCategory.CONCERT
        assert result.performer is None

    def test_prompt_includes_tags(self):
        llm = ScriptedLLM({"category": "OTHER"})
        asyncio.run(EventClassifier(llm=llm, registry=PromptRegistry()).classify(REQUEST))

        _, user = llm.prompts[0]
        assert 'Event: "Gospel Brunch"' in user
        assert "Ticketmaster classification: Music" in user
        assert "Venue's category guess" not in user

    def test_unavailable_raises(self):
        with pytest.raises(ExternalServiceUnavailableError):
            classify({}, available=False)

    def test_off_schema_reply_raises(self):
        with pytest.raises(MalformedExternalResponseError):
            classify(error=MalformedExternalResponseError("scripted", "no tool call"))
