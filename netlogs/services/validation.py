"""
Validation engine for uploaded batches.

``validate_batch`` is a pure function: it never touches storage or logs, and it
returns either a ``ValidBatch`` holding typed entries or a ``RejectedBatch``
naming why the batch was refused. A single invalid entry rejects the whole
batch, so the collector never has to reason about partial acceptance.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Union

from pydantic import ValidationError

from netlogs.core.config import settings
from netlogs.core.context import utc_now
from netlogs.core.errors import BatchValidationError
from netlogs.models.schemas import MetricBatchEntry

MAX_REPORTED_ENTRIES = 20


class RejectionReason(str, Enum):
    NOT_AN_ARRAY = 'not_an_array'
    EMPTY_BATCH = 'empty_batch'
    BATCH_TOO_LARGE = 'batch_too_large'
    INVALID_ENTRIES = 'invalid_entries'


@dataclass(frozen=True)
class ValidBatch:
    entries: List[MetricBatchEntry]
    ok = True


@dataclass(frozen=True)
class RejectedBatch:
    reason: RejectionReason
    message: str
    invalid_count: int = 0
    details: list = field(default_factory=list)
    ok = False

    def to_error(self) -> BatchValidationError:
        details = {'reason': self.reason.value}
        if self.details:
            details['entries'] = self.details
        return BatchValidationError(self.message, details=details, invalid_count=self.invalid_count)


ValidationOutcome = Union[ValidBatch, RejectedBatch]


def _format_errors(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors(include_url=False):
        loc = '.'.join(str(part) for part in err['loc']) or '<entry>'
        messages.append(f"{loc}: {err['msg']}")
    return messages


def validate_entry(raw, now: datetime = None, past: timedelta = None, future: timedelta = None) -> MetricBatchEntry:
    """Validate one entry; raises pydantic.ValidationError."""
    now = now or utc_now()
    past = past if past is not None else timedelta(days=settings.FRESHNESS_PAST_DAYS)
    future = future if future is not None else timedelta(minutes=settings.FRESHNESS_FUTURE_MINUTES)
    return MetricBatchEntry.model_validate(raw, context={'freshness': (now, past, future)})


def validate_batch(payload, now: datetime = None, max_batch_size: int = None,
                   past: timedelta = None, future: timedelta = None) -> ValidationOutcome:
    max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE

    if not isinstance(payload, list):
        return RejectedBatch(RejectionReason.NOT_AN_ARRAY, 'Invalid data format: expected a JSON array')
    if not payload:
        return RejectedBatch(RejectionReason.EMPTY_BATCH, 'Batch is empty')
    if len(payload) > max_batch_size:
        return RejectedBatch(
            RejectionReason.BATCH_TOO_LARGE,
            f'Batch too large: {len(payload)} entries (maximum {max_batch_size})',
        )

    now = now or utc_now()
    entries = []
    invalid = []
    for index, raw in enumerate(payload):
        try:
            entries.append(validate_entry(raw, now=now, past=past, future=future))
        except ValidationError as e:
            invalid.append({'index': index, 'errors': _format_errors(e)})

    if invalid:
        return RejectedBatch(
            RejectionReason.INVALID_ENTRIES,
            f'{len(invalid)} of {len(payload)} entries failed validation',
            invalid_count=len(invalid),
            details=invalid[:MAX_REPORTED_ENTRIES],
        )
    return ValidBatch(entries)
