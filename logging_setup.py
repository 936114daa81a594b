# logging_setup.py - loguru sink configuration shared by the API and the CLI
import sys

from loguru import logger

from config import AppConfig

_configured = False


def setup_logging(level=None):
    """Route loguru output to stderr at the configured level (idempotent)."""
    global _configured
    if _configured:
        return
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or AppConfig.LOG_LEVEL).upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )
    _configured = True
