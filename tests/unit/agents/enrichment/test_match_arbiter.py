"""
Unit tests for the ticket-match arbiter.

Covers reply validation (1-based index, fail-closed) and the choose() flow
with a scripted provider.
"""

import asyncio

import pytest
from pydantic import ValidationError

from eventcatalog.agents.enrichment.match_arbiter import (
    NO_MATCH,
    ArbitrationCandidate,
    ArbitrationReply,
    TicketMatchArbiter,
    parse_arbitration,
)
from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.agents.registry.prompt_registry import PromptRegistry
from eventcatalog.errors import ExternalServiceUnavailableError, MalformedExternalResponseError

# =============================================================================
# FIXTURES
# =============================================================================

CANDIDATES = [
    ArbitrationCandidate("Texas Longhorns Women's Basketball vs. Baylor", "1:00 PM"),
    ArbitrationCandidate("Texas Longhorns Men's Basketball vs. Arkansas", "7:00 PM"),
]


class ScriptedLLM(BaseLLMClient):
    """Validates a fixed payload against the requested schema."""

    provider = "scripted"

    def __init__(self, payload=None, available: bool = True, error: Exception | None = None):
        self.payload = payload if payload is not None else {}
        self.available = available
        self.error = error
        self.calls = 0

    @property
    def is_available(self) -> bool:
        return self.available

    async def complete(self, system_prompt, user_prompt, temperature=None, max_tokens=None):
        return ""

    async def complete_structured(
        self, system_prompt, user_prompt, output_schema, temperature=None, max_tokens=None
    ):
        self.calls += 1
        if self.error:
            raise self.error
        try:
            return output_schema.model_validate(self.payload)
        except ValidationError as e:
            raise MalformedExternalResponseError(self.provider, str(e)) from e

    def get_token_usage(self):
        return self._empty_usage()


def choose(llm: ScriptedLLM, candidates=CANDIDATES):
    arbiter = TicketMatchArbiter(llm=llm, registry=PromptRegistry())
    return asyncio.run(arbiter.choose("Texas MBB", "Moody Center", candidates))


def reply(**payload) -> ArbitrationReply:
    return ArbitrationReply.model_validate(payload)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestArbitrationReply:
    """Coercion of the structured reply."""

    @pytest.mark.parametrize("match", ["2", 1.0, True, [1]])
    def test_non_integer_index_is_null(self, match):
        assert reply(match=match).match is None

    def test_prefer_title_must_be_true(self):
        assert reply(match=1, preferTMTitle="yes").preferTMTitle is False
        assert reply(match=1, preferTMTitle=True).preferTMTitle is True

    def test_non_text_reason_dropped(self):
        assert reply(reason=42).reason is None


class TestParseArbitration:
    """Reply validation against the candidate list."""

    def test_one_based_to_zero_based(self):
        decision = parse_arbitration(reply(match=2, preferTMTitle=True, reason="MBB"), 2)
        assert decision.match_index == 1
        assert decision.prefer_title is True
        assert decision.reason == "MBB"
        assert decision.is_match

    def test_null_is_no_match(self):
        assert not parse_arbitration(reply(match=None), 2).is_match

    @pytest.mark.parametrize("match", [0, 3, -1, "2", 1.0, True])
    def test_invalid_index_is_no_match(self, match):
        assert parse_arbitration(reply(match=match), 2).match_index is None


class TestTicketMatchArbiter:
    """choose() fails closed on every error path."""

    def test_choose_returns_decision(self):
        decision = choose(ScriptedLLM({"reason": "men", "match": 2, "preferTMTitle": True}))
        assert decision.match_index == 1
        assert decision.prefer_title is True

    def test_no_candidates_skips_call(self):
        llm = ScriptedLLM({"match": 1})
        assert choose(llm, candidates=[]) == NO_MATCH
        assert llm.calls == 0

    def test_unavailable_provider(self):
        assert choose(ScriptedLLM({"match": 1}, available=False)) == NO_MATCH

    def test_provider_error(self):
        llm = ScriptedLLM(error=ExternalServiceUnavailableError("scripted", "timeout"))
        assert choose(llm) == NO_MATCH

    def test_off_schema_reply(self):
        """A reply the provider could not fit to the schema is no match."""
        llm = ScriptedLLM(error=MalformedExternalResponseError("scripted", "no tool call"))
        assert choose(llm) == NO_MATCH

    def test_out_of_range_reply(self):
        assert not choose(ScriptedLLM({"match": 5})).is_match
