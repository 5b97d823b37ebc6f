"""
Wire schemas for one collection run (MetricBatchEntry) and its endpoint results.

Numeric fields are strict: booleans and numeric strings are refused rather than
coerced, NaN/Infinity are refused, and out-of-range values fail validation
instead of being clamped. ``None`` always means "measurement unavailable".
"""
from datetime import datetime, timedelta, timezone
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, StringConstraints, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

NonNegative = Annotated[float, Field(strict=True, ge=0)]
Percent = Annotated[float, Field(strict=True, ge=0, le=100)]
Count = Annotated[int, Field(strict=True, ge=0)]
Identifier = Annotated[str, StringConstraints(strict=True, strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


class NetworkQuality(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    download_mbps: Optional[NonNegative] = None
    upload_mbps: Optional[NonNegative] = None
    responsiveness_rpm: Optional[NonNegative] = None


class Speedtest(NetworkQuality):
    ping_ms: Optional[NonNegative] = None
    server_location: Optional[StrictStr] = None
    server_country: Optional[StrictStr] = None


class EndpointResult(CamelModel):
    id: Identifier
    name: Identifier


class RttStats(CamelModel):
    min: Optional[NonNegative] = None
    avg: Optional[NonNegative] = None
    max: Optional[NonNegative] = None
    stddev: Optional[NonNegative] = None


class PingResult(EndpointResult):
    host: Optional[StrictStr] = None
    packet_loss_percent: Optional[Percent] = None
    rtt_stats: Optional[RttStats] = None


class CurlResult(EndpointResult):
    host: Optional[StrictStr] = None
    dns_lookup_seconds: Optional[NonNegative] = None
    ttfb_seconds: Optional[NonNegative] = None
    http_code: Optional[StrictStr] = None


class DnsResult(EndpointResult):
    domain: Optional[StrictStr] = None
    resolver: Optional[StrictStr] = None
    query_time_ms: Optional[NonNegative] = None


class MtrHop(CamelModel):
    count: Optional[Count] = None
    host: Optional[StrictStr] = None
    loss_percent: Optional[Percent] = None
    sent: Optional[Count] = None
    last_ms: Optional[NonNegative] = None
    avg_ms: Optional[NonNegative] = None
    best_ms: Optional[NonNegative] = None
    worst_ms: Optional[NonNegative] = None
    stddev: Optional[NonNegative] = None


class MtrResult(EndpointResult):
    host: Optional[StrictStr] = None
    # An empty list marks a failed or skipped trace
    hops: List[MtrHop] = Field(default_factory=list)


def parse_timestamp(value: str) -> datetime:
    """Parse ISO-8601 into an aware UTC datetime; naive input is read as UTC."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class MetricBatchEntry(CamelModel):
    timestamp: datetime
    network_quality: NetworkQuality
    speedtest: Speedtest
    ping_results: List[PingResult] = Field(default_factory=list)
    curl_results: List[CurlResult] = Field(default_factory=list)
    dns_results: List[DnsResult] = Field(default_factory=list)
    mtr_results: List[MtrResult] = Field(default_factory=list)

    @field_validator('timestamp', mode='before')
    @classmethod
    def _parse_timestamp(cls, value):
        if not isinstance(value, str):
            raise ValueError('timestamp must be an ISO-8601 string')
        try:
            return parse_timestamp(value)
        except (ValueError, OverflowError):
            # OverflowError: the UTC instant falls outside years 1..9999
            raise ValueError(f'timestamp is not a valid ISO-8601 instant: {value!r}') from None

    @field_validator('timestamp')
    @classmethod
    def _check_freshness(cls, value: datetime, info: ValidationInfo):
        window = (info.context or {}).get('freshness')
        if window is None:
            return value
        now, past, future = window
        if value < now - past:
            raise ValueError(f'timestamp is older than {_describe(past)}')
        if value > now + future:
            raise ValueError(f'timestamp is more than {_describe(future)} in the future')
        return value


def _describe(delta: timedelta) -> str:
    if delta.days >= 1 and delta.seconds == 0:
        return f'{delta.days} days'
    return f'{int(delta.total_seconds() // 60)} minutes'
