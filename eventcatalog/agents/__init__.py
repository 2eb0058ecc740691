"""LLM clients, prompt registry and enrichment agents."""
