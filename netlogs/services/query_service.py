import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from netlogs.core.config import settings
from netlogs.core.context import RequestContext, isoformat_z
from netlogs.core.errors import InvalidQueryError
from netlogs.models.network_log import NetworkLog
from netlogs.services.query_cache import QueryCache
from netlogs.services.storage import run_with_deadline, translate_db_error


def parse_limit(raw, default=None, maximum=None) -> int:
    """Parse a ?limit= value. Non-integers are refused; out-of-range values are clamped to [1, maximum]."""
    default = default or settings.QUERY_DEFAULT_LIMIT
    maximum = maximum or settings.QUERY_MAX_LIMIT
    if raw is None or str(raw).strip() == '':
        return min(default, maximum)
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise InvalidQueryError(f"limit must be an integer, got {raw!r}") from None
    return max(1, min(value, maximum))


def parse_hours(raw):
    if raw is None or str(raw).strip() == '':
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        raise InvalidQueryError(f"hours must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidQueryError('hours must be a positive finite number')
    return value


class QueryService:
    """Read path: most recent rows, newest first, behind a per-limit TTL cache."""

    def __init__(self, session_factory, cache: QueryCache = None, timeout=None):
        self.session_factory = session_factory
        self.cache = cache if cache is not None else QueryCache()
        self.timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS

    def _fetch(self, limit: int, since: str = None) -> list:
        session = self.session_factory()
        try:
            stmt = select(NetworkLog)
            if since is not None:
                stmt = stmt.where(NetworkLog.timestamp >= since)
            stmt = stmt.order_by(NetworkLog.timestamp.desc()).limit(limit)
            return [row.to_dict() for row in session.execute(stmt).scalars()]
        finally:
            session.close()

    def fetch_rows(self, limit: int, ctx: RequestContext, since: datetime = None) -> list:
        since_key = isoformat_z(since) if since is not None else None
        try:
            return run_with_deadline(self._fetch, limit, since_key, timeout=self.timeout, label='Log query')
        except SQLAlchemyError as e:
            raise translate_db_error(e, f"{ctx.tag} Log query") from e

    def recent(self, limit: int, ctx: RequestContext):
        """Returns (rows, cache_hit)."""
        rows = self.cache.get(limit)
        if rows is not None:
            logging.debug(f"{ctx.tag} Cache hit for limit={limit}")
            return rows, True

        rows = self.fetch_rows(limit, ctx)
        self.cache.put(limit, rows)
        logging.info(f"{ctx.tag} Returned {len(rows)} log entries (limit={limit})")
        return rows, False

    def window(self, limit: int, hours: float, ctx: RequestContext) -> list:
        since = ctx.received_at - timedelta(hours=hours) if hours else None
        return self.fetch_rows(limit, ctx, since=since)

    def ping_database(self) -> bool:
        def _ping():
            session = self.session_factory()
            try:
                session.execute(text('SELECT 1'))
                return True
            finally:
                session.close()

        try:
            return run_with_deadline(_ping, timeout=self.timeout, label='Health check')
        except Exception as e:
            logging.error(f"Database health check failed: {e}")
            return False
