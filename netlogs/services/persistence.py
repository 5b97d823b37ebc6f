import json
import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from netlogs.core.config import settings
from netlogs.core.context import RequestContext, isoformat_z
from netlogs.models.network_log import NetworkLog, SCHEMA_VERSION
from netlogs.models.schemas import MetricBatchEntry
from netlogs.services.storage import run_with_deadline, translate_db_error


def _encode_results(results) -> str:
    return json.dumps([r.model_dump(mode='json', by_alias=True) for r in results], separators=(',', ':'))


def entry_to_row(entry: MetricBatchEntry) -> NetworkLog:
    nq = entry.network_quality
    st = entry.speedtest
    return NetworkLog(
        timestamp=isoformat_z(entry.timestamp),
        schema_version=SCHEMA_VERSION,
        nq_download_mbps=nq.download_mbps,
        nq_upload_mbps=nq.upload_mbps,
        nq_responsiveness_rpm=nq.responsiveness_rpm,
        st_download_mbps=st.download_mbps,
        st_upload_mbps=st.upload_mbps,
        st_ping_ms=st.ping_ms,
        st_server_location=st.server_location,
        st_server_country=st.server_country,
        ping_results=_encode_results(entry.ping_results),
        curl_results=_encode_results(entry.curl_results),
        dns_results=_encode_results(entry.dns_results),
        mtr_results=_encode_results(entry.mtr_results),
    )


class PersistenceCoordinator:
    """Writes a whole batch in one transaction: every row lands, or none does."""

    def __init__(self, session_factory, timeout=None):
        self.session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS

    def _commit(self, rows: List[NetworkLog]) -> int:
        session = self.session_factory()
        try:
            session.add_all(rows)
            session.flush()
            session.commit()
            return len(rows)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def persist(self, entries: List[MetricBatchEntry], ctx: RequestContext) -> int:
        rows = [entry_to_row(e) for e in entries]
        try:
            inserted = run_with_deadline(self._commit, rows, timeout=self.timeout, label='Batch commit')
        except SQLAlchemyError as e:
            err = translate_db_error(e, f"{ctx.tag} Batch commit")
            if err.status_code == 409:
                logging.warning(f"{ctx.tag} Unique constraint hit at commit; concurrent upload won the race")
            raise err from e
        logging.info(f"{ctx.tag} Saved {inserted} rows")
        return inserted
