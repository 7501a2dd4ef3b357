from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "email_autoreply.log"
REPLIES_LOG_FILE_NAME = "replies.log"
PROCESSOR_LOGGER = "services.email_processor"


def configure_logging(log_dir: Path, level: str = "INFO", processor_level: Optional[str] = None) -> Path:
    """Configure console and rotating file loggers.

    Per-message outcomes of the batch processor also go to ``replies.log`` so
    sent replies can be audited without the Gmail/OpenAI client noise.
    ``processor_level`` overrides the root level for the processor only.
    """

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
            "console": {
                "format": "%(levelname)s | %(message)s",
            },
            "audit": {
                "format": "%(asctime)s | %(levelname)s | %(message)s",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "standard",
                "filename": str(log_path),
                "maxBytes": 1_000_000,
                "backupCount": 3,
                "encoding": "utf-8",
            },
            "replies": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "audit",
                "filename": str(log_dir / REPLIES_LOG_FILE_NAME),
                "maxBytes": 1_000_000,
                "backupCount": 5,
                "encoding": "utf-8",
            },
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "console",
            },
        },
        "loggers": {
            PROCESSOR_LOGGER: {
                "handlers": ["replies"],
                "level": (processor_level or level).upper(),
            },
            # googleapiclient logs every discovery/cache lookup at INFO
            "googleapiclient": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
        },
        "root": {
            "handlers": ["file", "stdout"],
            "level": level.upper(),
        },
    }

    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured at %s", level)
    return log_path
