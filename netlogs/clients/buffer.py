import json
import logging
import os
import tempfile
from datetime import datetime, timezone

from netlogs.core.config import settings


class LocalBuffer:
    """
    Durable queue of entries that could not be uploaded, kept as a JSON array on disk.

    Writes go to a temporary file in the same directory and are renamed over the
    buffer, so a crash mid-write leaves the previous contents intact.
    """
    def __init__(self, path=None):
        self.path = path or settings.BUFFER_FILE

    def load(self) -> list:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self._quarantine(e)
            return []
        if not isinstance(data, list):
            self._quarantine(ValueError('buffer root is not an array'))
            return []
        return data

    def save(self, entries: list):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix='.buffer-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(entries, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def append(self, entry: dict):
        entries = self.load()
        entries.append(entry)
        self.save(entries)
        logging.info(f"Buffered entry {entry.get('timestamp')} ({len(entries)} pending)")

    def __len__(self):
        return len(self.load())

    def _quarantine(self, error):
        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S')
        target = f"{self.path}.corrupt-{stamp}"
        logging.error(f"Unreadable upload buffer {self.path} ({error}); moved to {target}")
        os.replace(self.path, target)
