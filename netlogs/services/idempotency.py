import concurrent.futures
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from netlogs.core.config import settings
from netlogs.core.context import RequestContext, isoformat_z
from netlogs.core.errors import DuplicateTimestampError, StorageTimeoutError
from netlogs.models.network_log import NetworkLog
from netlogs.models.schemas import MetricBatchEntry
from netlogs.services.storage import translate_db_error


class IdempotencyGuard:
    """
    Rejects a batch when any of its timestamps is already stored.

    Lookups are independent reads against the unique timestamp index, so they
    fan out over a thread pool and are gathered under one deadline.
    """

    def __init__(self, session_factory, max_workers=None, timeout=None):
        self.session_factory = session_factory
        self.max_workers = max_workers or settings.MAX_WORKERS
        self.timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS

    def timestamp_exists(self, timestamp: str) -> bool:
        session = self.session_factory()
        try:
            stmt = select(NetworkLog.id).where(NetworkLog.timestamp == timestamp).limit(1)
            return session.execute(stmt).first() is not None
        finally:
            session.close()

    def find_existing(self, timestamps: List[str]) -> List[str]:
        if not timestamps:
            return []

        existing = []
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(timestamps)))
        try:
            futures = {executor.submit(self.timestamp_exists, ts): ts for ts in timestamps}
            try:
                for f in concurrent.futures.as_completed(futures, timeout=self.timeout):
                    if f.result():
                        existing.append(futures[f])
            except concurrent.futures.TimeoutError:
                raise StorageTimeoutError(f"Duplicate check timed out after {self.timeout}s") from None
            except SQLAlchemyError as e:
                raise translate_db_error(e, 'Duplicate check') from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return sorted(existing)

    def check(self, entries: List[MetricBatchEntry], ctx: RequestContext) -> None:
        timestamps = [isoformat_z(e.timestamp) for e in entries]

        seen = set()
        repeated = []
        for ts in timestamps:
            if ts in seen:
                repeated.append(ts)
            seen.add(ts)
        if repeated:
            logging.warning(f"{ctx.tag} Batch repeats {len(repeated)} timestamp(s) internally")
            raise DuplicateTimestampError(
                f"Batch contains {len(repeated)} repeated timestamp(s)", timestamps=sorted(set(repeated))
            )

        existing = self.find_existing(timestamps)
        if existing:
            logging.info(f"{ctx.tag} {len(existing)} of {len(timestamps)} timestamp(s) already stored")
            raise DuplicateTimestampError(
                f"{len(existing)} of {len(timestamps)} entries already exist (duplicate timestamps)",
                timestamps=existing,
            )
