import logging
import sys

from synq.core.config import settings


def setup_logging():
    """
    Configure structured logging for the route optimizer.

    Sets up logging to stdout with timestamps, log levels, and module names.
    The level comes from the LOG_LEVEL setting.
    """
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(module)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logging.getLogger("synq")


# Create global logger instance
logger = setup_logging()
