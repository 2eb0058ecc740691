"""Enrichment agents: classification, match arbitration and secondary lookups."""
