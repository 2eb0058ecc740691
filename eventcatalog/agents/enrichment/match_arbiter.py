"""
TicketMatchArbiter: LLM arbitration between ranked ticket-platform candidates.

The model answers with a 1-based candidate number or null. Anything else
(out of range, not an integer, reply off-schema, provider down) is read as
"no match" so an uncertain answer can never produce a wrong merge.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.agents.llm.provider_router import get_llm_client
from eventcatalog.agents.registry.prompt_registry import (
    PromptRegistry,
    get_prompt_registry,
)
from eventcatalog.configs.settings import get_settings
from eventcatalog.errors import (
    ExternalServiceUnavailableError,
    MalformedExternalResponseError,
)

logger = logging.getLogger(__name__)


class ArbitrationReply(BaseModel):
    """Structured reply requested from the arbitration model."""

    reason: Optional[str] = None
    match: Optional[int] = None
    preferTMTitle: bool = False

    @field_validator("match", mode="before")
    @classmethod
    def strict_index(cls, v: Any) -> Optional[int]:
        # bool is an int subclass; True must not select candidate 1
        if isinstance(v, bool) or not isinstance(v, int):
            return None
        return v

    @field_validator("preferTMTitle", mode="before")
    @classmethod
    def literal_true(cls, v: Any) -> bool:
        return v is True

    @field_validator("reason", mode="before")
    @classmethod
    def text_reason(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


@dataclass(frozen=True)
class ArbitrationCandidate:
    name: str
    time: str = ""


@dataclass(frozen=True)
class ArbitrationDecision:
    """Outcome of one arbitration call; match_index is 0-based."""

    match_index: int | None = None
    prefer_title: bool = False
    reason: str | None = None

    @property
    def is_match(self) -> bool:
        return self.match_index is not None


NO_MATCH = ArbitrationDecision()


def parse_arbitration(reply: ArbitrationReply, candidate_count: int) -> ArbitrationDecision:
    """
    Check the model's reply against the candidate list.

    Example:
        >>> parse_arbitration(ArbitrationReply(match=2, preferTMTitle=True), 2).match_index
        1
        >>> parse_arbitration(ArbitrationReply(match=3), 2).is_match
        False
    """
    if reply.match is None:
        return ArbitrationDecision(reason=reply.reason)
    if not 1 <= reply.match <= candidate_count:
        logger.info(f"Arbitration index {reply.match} out of range 1..{candidate_count}")
        return ArbitrationDecision(reason=reply.reason)

    return ArbitrationDecision(
        match_index=reply.match - 1,
        prefer_title=reply.preferTMTitle,
        reason=reply.reason,
    )


class TicketMatchArbiter:
    """Asks the arbitration model which candidate, if any, is the same event."""

    prompt_name = "ticket_match_arbitration"

    def __init__(
        self,
        llm: BaseLLMClient | None = None,
        registry: PromptRegistry | None = None,
    ):
        settings = get_settings()
        self.llm = llm or get_llm_client(
            provider=settings.LLM_PROVIDER,
            model_name=settings.ARBITRATION_MODEL,
            temperature=0.0,
            max_tokens=400,
        )
        self.registry = registry or get_prompt_registry()

    async def choose(
        self,
        title: str,
        venue_name: str,
        candidates: list[ArbitrationCandidate],
    ) -> ArbitrationDecision:
        if not candidates or not self.llm.is_available:
            return NO_MATCH

        system_prompt, user_prompt = self.registry.render(
            self.prompt_name,
            variables={
                "title": title,
                "venue_name": venue_name,
                "candidates": candidates,
            },
        )

        try:
            reply = await self.llm.complete_structured(
                system_prompt, user_prompt, output_schema=ArbitrationReply
            )
        except (ExternalServiceUnavailableError, MalformedExternalResponseError) as e:
            logger.warning(f"Arbitration failed for '{title}': {e}")
            return NO_MATCH

        decision = parse_arbitration(reply, len(candidates))
        logger.debug(f"Arbitration for '{title}': {decision}")
        return decision
