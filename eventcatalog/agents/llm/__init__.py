from eventcatalog.agents.llm.base_llm_client import BaseLLMClient
from eventcatalog.agents.llm.provider_router import get_llm_client

__all__ = ["BaseLLMClient", "get_llm_client"]
