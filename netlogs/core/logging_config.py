import logging
import sys

from .config import settings

LOG_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def configure_logging(level: str = None) -> None:
    """Configure the root logger once at process start (LOG_LEVEL, default INFO)."""
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = LOG_LEVELS.get(level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
        force=True,
    )
    # uvicorn access lines duplicate our per-request summary
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.info(f"Logging configured: level={logging.getLevelName(log_level)}")
