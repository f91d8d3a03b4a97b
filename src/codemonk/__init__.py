"""Code Monk client - session and registration core for the Code Monk club app.

Talks to the Code Monk REST backend: keeps track of who is logged in and
walks new members through email-verified registration.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"


def setup_logging(log_dir: Path | None = None) -> Path:
    """Configure logging to both console and rotating file.

    Args:
        log_dir: Directory for the log file; defaults to ``app.log_dir``.

    Returns:
        Path of the log file in use.
    """
    if log_dir is None:
        from codemonk.config import get_settings

        log_dir = get_settings().app.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"codemonk.{os.getpid()}.log"

    # Root logger config
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Console handler - the CLI prints its own output, so warnings only
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.info("Logging configured. Log file: %s", log_file.absolute())
    return log_file
