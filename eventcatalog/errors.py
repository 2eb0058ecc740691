"""
Error taxonomy for the catalog pipeline.

These are raised inside per-item processing and caught at the item boundary.
The batch entry points (run_upsert, run_match_batch, run_enrichment_batch)
always return a summary instead of propagating them.
"""


class CatalogError(Exception):
    """Base class for all pipeline errors."""


class ReferenceMissingError(CatalogError):
    """A record references an entity (e.g. a venue slug) that does not exist."""

    def __init__(self, kind: str, key: str, context: str | None = None):
        self.kind = kind
        self.key = key
        message = f"{kind} not found: {key}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class ExternalServiceUnavailableError(CatalogError):
    """Timeout, HTTP error or network failure talking to a third-party service."""

    def __init__(self, service: str, detail: str):
        self.service = service
        super().__init__(f"{service} unavailable: {detail}")


class MalformedExternalResponseError(CatalogError):
    """A third-party response could not be parsed or violated its schema."""

    def __init__(self, service: str, detail: str):
        self.service = service
        super().__init__(f"{service} returned a malformed response: {detail}")


class PersistenceConflictError(CatalogError):
    """A write lost a uniqueness race against a concurrent insert."""
