from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Index
from .base import Base
import datetime
import json

# Bumped whenever the meaning of a column or of a serialized result collection changes
SCHEMA_VERSION = 2

RESULT_COLUMNS = ('ping_results', 'curl_results', 'dns_results', 'mtr_results')


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class NetworkLog(Base):
    __tablename__ = 'network_logs'
    id = Column(Integer, primary_key=True)
    # Canonical UTC 'YYYY-MM-DDTHH:MM:SS.ffffffZ'; lexical order is time order
    timestamp = Column(String(32), nullable=False, unique=True)
    schema_version = Column(Integer, nullable=False, default=SCHEMA_VERSION)

    # networkQuality
    nq_download_mbps = Column(Float, nullable=True)
    nq_upload_mbps = Column(Float, nullable=True)
    nq_responsiveness_rpm = Column(Float, nullable=True)

    # speedtest
    st_download_mbps = Column(Float, nullable=True)
    st_upload_mbps = Column(Float, nullable=True)
    st_ping_ms = Column(Float, nullable=True)
    st_server_location = Column(String, nullable=True)
    st_server_country = Column(String, nullable=True)

    # Endpoint result collections, JSON encoded so the target set can change without a migration
    ping_results = Column(Text, nullable=False, default='[]')
    curl_results = Column(Text, nullable=False, default='[]')
    dns_results = Column(Text, nullable=False, default='[]')
    mtr_results = Column(Text, nullable=False, default='[]')

    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        Index('idx_network_logs_timestamp_desc', timestamp.desc()),
    )

    def to_dict(self) -> dict:
        row = {
            'id': self.id,
            'timestamp': self.timestamp,
            'schema_version': self.schema_version,
            'nq_download_mbps': self.nq_download_mbps,
            'nq_upload_mbps': self.nq_upload_mbps,
            'nq_responsiveness_rpm': self.nq_responsiveness_rpm,
            'st_download_mbps': self.st_download_mbps,
            'st_upload_mbps': self.st_upload_mbps,
            'st_ping_ms': self.st_ping_ms,
            'st_server_location': self.st_server_location,
            'st_server_country': self.st_server_country,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        for column in RESULT_COLUMNS:
            raw = getattr(self, column)
            row[column] = json.loads(raw) if raw else []
        return row
