"""Retry bookkeeping for enrichment records."""

from dataclasses import dataclass

from eventcatalog.schemas.event import EnrichmentStatus

MAX_RETRIES = 3


@dataclass(frozen=True)
class RetryState:
    """(status, attempts, last_error) of one enrichment record."""

    status: EnrichmentStatus
    attempts: int = 0
    last_error: str | None = None

    def eligible_for_retry(self, ceiling: int = MAX_RETRIES) -> bool:
        return self.status == EnrichmentStatus.FAILED and self.attempts < ceiling

    def needs_enrichment(self, ceiling: int = MAX_RETRIES) -> bool:
        """Pending work, or a failure that still has retries left."""
        return self.status == EnrichmentStatus.PENDING or self.eligible_for_retry(ceiling)

    def record_failure(self, error: str) -> "RetryState":
        return RetryState(EnrichmentStatus.FAILED, self.attempts + 1, error)

    def record_outcome(self, status: EnrichmentStatus) -> "RetryState":
        """Non-failure outcome; attempts are kept, the error is cleared."""
        return RetryState(status, self.attempts, None)

    @classmethod
    def from_record(cls, record) -> "RetryState":
        if record is None:
            return cls(EnrichmentStatus.PENDING)
        return cls(record.status, record.retry_count or 0, record.error_message)
