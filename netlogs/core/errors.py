"""
Error taxonomy shared by the ingestion pipeline and the HTTP layer.

Each error carries the HTTP status it maps to and a stable machine-readable
category, so the collector can decide between discarding a batch
(malformed / duplicate) and retrying it (storage faults).
"""


class IngestError(Exception):
    status_code = 500
    category = 'internal_error'
    retryable = False

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {
            'error': self.message,
            'category': self.category,
            'retryable': self.retryable,
        }
        if self.details is not None:
            body['details'] = self.details
        return body


class MalformedPayloadError(IngestError):
    status_code = 400
    category = 'malformed_json'


class BatchValidationError(IngestError):
    status_code = 400
    category = 'validation_error'

    def __init__(self, message: str, details=None, invalid_count: int = 0):
        super().__init__(message, details)
        self.invalid_count = invalid_count


class PayloadTooLargeError(IngestError):
    status_code = 400
    category = 'payload_too_large'


class InvalidQueryError(IngestError):
    status_code = 400
    category = 'invalid_query'


class NotFoundError(IngestError):
    status_code = 404
    category = 'not_found'


class MethodNotAllowedError(IngestError):
    status_code = 405
    category = 'method_not_allowed'


class DuplicateTimestampError(IngestError):
    """The batch (or part of it) is already stored: the collector treats this as delivered."""
    status_code = 409
    category = 'duplicate_timestamp'

    def __init__(self, message: str, timestamps=None):
        self.timestamps = list(timestamps or [])
        details = {'duplicate_count': len(self.timestamps), 'timestamps': self.timestamps} if self.timestamps else None
        super().__init__(message, details)


class StorageUnavailableError(IngestError):
    status_code = 500
    category = 'storage_unavailable'
    retryable = True


class StorageTimeoutError(StorageUnavailableError):
    category = 'storage_timeout'
