"""Deadline-bounded execution of storage calls."""
import concurrent.futures
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from netlogs.core.config import settings
from netlogs.core.errors import DuplicateTimestampError, StorageTimeoutError, StorageUnavailableError


def run_with_deadline(fn, *args, timeout=None, label='storage operation'):
    """Run ``fn(*args)`` on a worker thread and wait at most ``timeout`` seconds.

    On expiry the worker is abandoned, not interrupted: a late commit may still
    land, which is harmless because timestamps are unique.
    """
    timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            raise StorageTimeoutError(f"{label} timed out after {timeout}s") from None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def translate_db_error(exc: SQLAlchemyError, label: str):
    """Map a SQLAlchemy failure onto the ingest error taxonomy."""
    if isinstance(exc, IntegrityError):
        return DuplicateTimestampError('Duplicate timestamp detected while committing batch')
    logging.error(f"{label} failed: {exc.__class__.__name__}: {exc}")
    return StorageUnavailableError('Storage is temporarily unavailable')
