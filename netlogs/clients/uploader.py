import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests

from netlogs.core.config import settings

# The server refused the content itself; resending the same batch cannot succeed
NON_RETRYABLE_STATUSES = {400, 405, 413, 422}


class DeliveryStatus(str, Enum):
    DELIVERED = 'delivered'
    DUPLICATE = 'duplicate'
    REJECTED = 'rejected'
    FAILED = 'failed'


@dataclass(frozen=True)
class DeliveryOutcome:
    status: DeliveryStatus
    attempts: int
    http_status: Optional[int] = None
    message: str = ''

    @property
    def settled(self) -> bool:
        """True when the batch must not be buffered again."""
        return self.status != DeliveryStatus.FAILED


class UploadClient:
    def __init__(self, endpoint=None, timeout=None, max_attempts=None, initial_delay=None,
                 verify_ssl=None, session=None, sleep=time.sleep):
        endpoint = endpoint or settings.UPLOAD_ENDPOINT
        if not endpoint.startswith(('http://', 'https://')):
            endpoint = f"http://{endpoint}"

        self.endpoint = endpoint
        self.timeout = timeout if timeout is not None else settings.UPLOAD_TIMEOUT_SECONDS
        self.max_attempts = max(1, max_attempts or settings.UPLOAD_MAX_ATTEMPTS)
        self.initial_delay = initial_delay if initial_delay is not None else settings.UPLOAD_INITIAL_DELAY_SECONDS
        self.verify_ssl = verify_ssl if verify_ssl is not None else not settings.UPLOAD_SKIP_SSL
        self.session = session or requests.Session()
        self._sleep = sleep
        logging.info(f"Upload client initialized for {self.endpoint} (SSL Verify: {self.verify_ssl})")

    def _post(self, batch: list, request_id: str) -> requests.Response:
        return self.session.post(
            self.endpoint,
            json=batch,
            headers={'X-Request-ID': request_id},
            timeout=self.timeout,
            verify=self.verify_ssl,
        )

    @staticmethod
    def _error_body(response: requests.Response):
        """Return (message, JSON error body or None) for a failed response."""
        try:
            body = response.json()
        except ValueError:
            return response.text[:200], None
        if isinstance(body, dict):
            return str(body.get('error', body)), body
        return str(body)[:200], None

    def deliver(self, batch: list) -> DeliveryOutcome:
        """POST a batch, retrying transient failures with exponential backoff."""
        request_id = uuid.uuid4().hex
        delay = self.initial_delay
        outcome = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._post(batch, request_id)
            except requests.RequestException as e:
                logging.warning(f"[{request_id}] Upload attempt {attempt}/{self.max_attempts} failed: {e}")
                outcome = DeliveryOutcome(DeliveryStatus.FAILED, attempt, message=str(e))
            else:
                code = response.status_code
                if code == 200:
                    logging.info(f"[{request_id}] ✓ Upload successful ({len(batch)} entries)")
                    return DeliveryOutcome(DeliveryStatus.DELIVERED, attempt, code)
                message, body = self._error_body(response)
                if code == 409:
                    logging.info(f"[{request_id}] Server already has this batch: {message}")
                    return DeliveryOutcome(DeliveryStatus.DUPLICATE, attempt, code, message)
                # A server that answers with its error contract says whether resending can help
                server_refused = code >= 500 and body is not None and body.get('retryable') is False
                if code in NON_RETRYABLE_STATUSES or server_refused:
                    logging.error(f"[{request_id}] ✗ Upload rejected (HTTP {code}): {message}")
                    return DeliveryOutcome(DeliveryStatus.REJECTED, attempt, code, message)
                logging.warning(f"[{request_id}] Upload attempt {attempt}/{self.max_attempts} failed (HTTP {code}): {message}")
                outcome = DeliveryOutcome(DeliveryStatus.FAILED, attempt, code, message)

            if attempt < self.max_attempts:
                self._sleep(delay)
                delay *= 2

        logging.error(f"[{request_id}] ✗ Upload failed after {self.max_attempts} attempts")
        return outcome
