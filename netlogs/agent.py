"""
Collector-side delivery agent.

The shell collector produces one MetricBatchEntry per run. Each cycle first
drains entries buffered by earlier failed uploads, one per request so that a
409 can only mean "this entry is already stored", then uploads the new entry.
If the server is still unreachable the new entry goes straight to the buffer.

    python -m netlogs.agent entry.json
    some-collector | python -m netlogs.agent
"""
import argparse
import json
import logging
import sys
from datetime import datetime, timezone

from netlogs.clients.buffer import LocalBuffer
from netlogs.clients.uploader import DeliveryStatus, UploadClient
from netlogs.core.logging_config import configure_logging

EMPTY_QUALITY = {'download_mbps': None, 'upload_mbps': None, 'responsiveness_rpm': None}


def make_entry(timestamp=None, network_quality=None, speedtest=None, ping_results=None,
               curl_results=None, dns_results=None, mtr_results=None) -> dict:
    if timestamp is None:
        timestamp = datetime.now(timezone.utc).isoformat(timespec='seconds')
    elif isinstance(timestamp, datetime):
        timestamp = timestamp.isoformat()
    return {
        'timestamp': timestamp,
        'networkQuality': dict(network_quality or EMPTY_QUALITY),
        'speedtest': dict(speedtest or {}),
        'pingResults': list(ping_results or []),
        'curlResults': list(curl_results or []),
        'dnsResults': list(dns_results or []),
        'mtrResults': list(mtr_results or []),
    }


class CollectorAgent:
    def __init__(self, client: UploadClient, buffer: LocalBuffer):
        self.client = client
        self.buffer = buffer

    def flush_buffer(self) -> bool:
        """Re-deliver buffered entries oldest first. Returns False if the server is still failing."""
        pending = self.buffer.load()
        if not pending:
            return True

        logging.info(f"Re-delivering {len(pending)} buffered entries")
        for index, entry in enumerate(pending):
            outcome = self.client.deliver([entry])
            if outcome.status == DeliveryStatus.REJECTED:
                logging.error(f"Dropping buffered entry {entry.get('timestamp')}: {outcome.message}")
            elif not outcome.settled:
                self.buffer.save(pending[index:])
                logging.warning(f"{len(pending) - index} entries remain buffered")
                return False

        self.buffer.save([])
        return True

    def run_cycle(self, entry: dict) -> DeliveryStatus:
        if not self.flush_buffer():
            self.buffer.append(entry)
            return DeliveryStatus.FAILED

        outcome = self.client.deliver([entry])
        if not outcome.settled:
            self.buffer.append(entry)
        elif outcome.status == DeliveryStatus.REJECTED:
            logging.error(f"Discarding entry {entry.get('timestamp')}: {outcome.message}")
        return outcome.status


def main(argv=None):
    parser = argparse.ArgumentParser(description='Upload a network-quality entry, buffering it on failure.')
    parser.add_argument('entry', nargs='?', help='JSON file with one entry (default: stdin)')
    parser.add_argument('--endpoint', help='upload URL (default: $UPLOAD_ENDPOINT)')
    parser.add_argument('--buffer', help='buffer file (default: $BUFFER_FILE)')
    parser.add_argument('--flush-only', action='store_true', help='only re-deliver buffered entries')
    args = parser.parse_args(argv)

    configure_logging()
    agent = CollectorAgent(UploadClient(endpoint=args.endpoint), LocalBuffer(args.buffer))

    if args.flush_only:
        return 0 if agent.flush_buffer() else 1

    if args.entry:
        with open(args.entry, 'r') as f:
            entry = json.load(f)
    else:
        entry = json.load(sys.stdin)
    if not isinstance(entry, dict):
        parser.error('expected a single JSON object')

    status = agent.run_cycle(entry)
    logging.info(f"Cycle finished: {status.value}")
    return 0 if status in (DeliveryStatus.DELIVERED, DeliveryStatus.DUPLICATE) else 1


if __name__ == '__main__':
    sys.exit(main())
