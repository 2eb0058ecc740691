"""Event catalog: identity resolution, ticket-platform matching and enrichment."""

__version__ = "0.1.0"
