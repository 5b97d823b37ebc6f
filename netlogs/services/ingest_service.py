import logging
import time
from dataclasses import dataclass

from netlogs.core.context import RequestContext
from netlogs.services.idempotency import IdempotencyGuard
from netlogs.services.persistence import PersistenceCoordinator
from netlogs.services.validation import validate_batch


@dataclass(frozen=True)
class IngestResult:
    inserted: int
    duration_ms: int


class IngestService:
    """
    validate -> duplicate check -> atomic commit.

    Every stage rejects the whole batch; nothing is retried here, the collector
    owns retries and relies on duplicate rejection to make them safe.
    """

    def __init__(self, session_factory, guard: IdempotencyGuard = None,
                 coordinator: PersistenceCoordinator = None, max_batch_size: int = None,
                 clock=time.perf_counter):
        self.guard = guard or IdempotencyGuard(session_factory)
        self.coordinator = coordinator or PersistenceCoordinator(session_factory)
        self.max_batch_size = max_batch_size
        self._clock = clock

    def ingest(self, payload, ctx: RequestContext) -> IngestResult:
        started = self._clock()

        outcome = validate_batch(payload, now=ctx.received_at, max_batch_size=self.max_batch_size)
        if not outcome.ok:
            logging.warning(f"{ctx.tag} Rejected batch: {outcome.message}")
            raise outcome.to_error()

        entries = outcome.entries
        logging.info(f"{ctx.tag} Processing {len(entries)} entries")
        self.guard.check(entries, ctx)
        inserted = self.coordinator.persist(entries, ctx)

        duration_ms = int((self._clock() - started) * 1000)
        logging.info(f"{ctx.tag} ✅ Batch insert completed: inserted={inserted} in {duration_ms}ms")
        return IngestResult(inserted=inserted, duration_ms=duration_ms)
