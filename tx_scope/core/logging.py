# Centralized logging configuration for the tx_scope package.

import logging
import sys
from typing import Any, Dict, Optional

from tx_scope.settings import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Default level if LOG_LEVEL env var is not set
DEFAULT_LOG_LEVEL = "INFO"

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Libraries known to be noisy that we might want to quiet down
NOISY_LIBRARIES = ["sqlalchemy.engine", "asyncio"]

TRANSACTION_LOGGER_NAME = "tx_scope.transaction"


def setup_logging():
    """
    Configures logging for the application.

    Reads the desired log level from the LOG_LEVEL environment variable.
    Defaults to INFO if not set or invalid.
    Sets a standard format and directs logs to stderr.
    Sets louder libraries to WARNING level.
    """
    settings = Settings()
    log_level_name = settings.get_log_level(default=DEFAULT_LOG_LEVEL)

    if log_level_name not in VALID_LOG_LEVELS:
        print(
            f"WARNING: Invalid LOG_LEVEL '{log_level_name}'. "
            f"Defaulting to {DEFAULT_LOG_LEVEL}. "
            f"Valid levels are: {', '.join(VALID_LOG_LEVELS)}",
            file=sys.stderr,
        )
        log_level_name = DEFAULT_LOG_LEVEL

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.getLevelName(log_level_name))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    for lib_name in NOISY_LIBRARIES:
        logging.getLogger(lib_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured with level {log_level_name}.")


def log_transaction_event(transaction_id: Optional[str], event: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Log a transaction lifecycle event (open, join, close)."""
    logger = logging.getLogger(TRANSACTION_LOGGER_NAME)
    extra = {"transaction_id": transaction_id, "event": event}
    if details:
        extra.update(details)
    logger.debug(f"[{transaction_id}] Transaction {event}", extra=extra)
