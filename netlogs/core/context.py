import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

REQUEST_ID_HEADERS = ('x-request-id', 'cf-ray')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """UTC ISO-8601 with microsecond precision and a 'Z' suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='microseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class RequestContext:
    """Per-request correlation data, passed explicitly through every service call."""

    request_id: str
    received_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_headers(cls, headers) -> 'RequestContext':
        for name in REQUEST_ID_HEADERS:
            value = headers.get(name)
            if value and value.strip():
                return cls(request_id=value.strip()[:128])
        return cls(request_id=uuid.uuid4().hex)

    @property
    def tag(self) -> str:
        return f"[{self.request_id}]"
