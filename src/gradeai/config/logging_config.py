"""
Centralized logging configuration for the analysis engine.

Uses Loguru with optional JSON output for production observability.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

NOISY_MODULES = ("httpx", "httpcore", "urllib3", "PIL", "fitz", "google", "anthropic", "openai")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_output: bool = False,
) -> None:
    """
    Configure Loguru sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file
        json_output: Serialize stderr records as JSON (extra fields included)
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        serialize=json_output,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name} | {message}",
        level=level,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            serialize=True,
            level="DEBUG",  # Always debug to file
            rotation="10 MB",
            retention="30 days",
            compression="zip",
        )

    # Suppress noisy third-party loggers
    for module in NOISY_MODULES:
        logger.disable(module)


def setup_logging_from_settings(settings) -> None:
    """Configure logging from a Settings instance."""
    setup_logging(level=settings.log_level, log_file=settings.log_file, json_output=settings.log_json)

