"""
Producer registry for venue sources.

A producer is any callable returning the NormalizedRecords for one venue.
Scraping internals live behind the callable; the upsert engine only sees
the records.

Usage:
    registry = ProducerRegistry()

    @registry.register("stubbs")
    def stubbs_events() -> list[NormalizedRecord]:
        ...

    result = run_producers(session, registry)
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from eventcatalog.ingestion.upsert import run_upsert
from eventcatalog.schemas.event import NormalizedRecord, UpsertSummary

logger = logging.getLogger(__name__)

Producer = Callable[[], Iterable[NormalizedRecord]]


class ProducerRegistry:
    """Maps a venue key to the producer that emits its records."""

    def __init__(self) -> None:
        self._producers: dict[str, Producer] = {}

    def register(self, key: str, producer: Optional[Producer] = None):
        """
        Register a producer directly or as a decorator.

        Re-registering a key replaces the previous producer.
        """
        if producer is not None:
            self._producers[key] = producer
            return producer

        def decorator(func: Producer) -> Producer:
            self._producers[key] = func
            return func

        return decorator

    def get(self, key: str) -> Optional[Producer]:
        return self._producers.get(key)

    def keys(self) -> list[str]:
        return list(self._producers)

    def __contains__(self, key: str) -> bool:
        return key in self._producers

    def __len__(self) -> int:
        return len(self._producers)


@dataclass
class ProducerRunResult:
    """Per-producer counts plus the aggregated upsert outcome."""

    records_by_producer: dict[str, int] = field(default_factory=dict)
    producer_errors: dict[str, str] = field(default_factory=dict)
    upsert: UpsertSummary = field(default_factory=UpsertSummary)
    duration_seconds: float = 0.0


def run_producers(
    session: Session,
    registry: ProducerRegistry,
    keys: Optional[list[str]] = None,
) -> ProducerRunResult:
    """
    Run producers and upsert everything they return.

    A producer that raises is recorded in producer_errors and contributes no
    records; the remaining producers still run.
    """
    start = time.monotonic()
    result = ProducerRunResult()
    records: list[NormalizedRecord] = []

    for key in keys or registry.keys():
        producer = registry.get(key)
        if producer is None:
            result.producer_errors[key] = f"No producer registered for '{key}'"
            continue
        try:
            produced = list(producer())
        except Exception as e:
            logger.warning(f"Producer '{key}' failed: {e}")
            result.producer_errors[key] = str(e)
            continue

        result.records_by_producer[key] = len(produced)
        records.extend(produced)
        logger.info(f"Producer '{key}' returned {len(produced)} records")

    result.upsert = run_upsert(session, records)
    result.duration_seconds = time.monotonic() - start
    return result
