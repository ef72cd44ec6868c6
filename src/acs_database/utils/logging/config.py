# ABOUTME: Logging configuration using loguru sinks with structlog call sites routed into them
# ABOUTME: Dual-mode operation: interactive CLI (files) vs production JSON logging (stdout)

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog
from loguru import logger


class LoggingMode:
    """Logging mode constants."""

    INTERACTIVE = "interactive"
    PRODUCTION = "production"


LOG_DIR = Path("logs")

# Third-party loggers quieted to WARNING so they do not fight the progress display
THIRD_PARTY_LOGGERS = ["httpx", "httpcore", "asyncio", "urllib3"]

_STRUCTLOG_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "msg": "INFO",
    "warning": "WARNING",
    "warn": "WARNING",
    "error": "ERROR",
    "exception": "ERROR",
    "critical": "CRITICAL",
}

_TEXT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[logger]} - {message}"


def detect_logging_mode() -> str:
    """Detect whether we're running in interactive or production mode."""
    mode = os.getenv("ACS_DATABASE_LOG_MODE")
    if mode and mode.lower() in [LoggingMode.INTERACTIVE, LoggingMode.PRODUCTION]:
        return mode.lower()

    return LoggingMode.INTERACTIVE if sys.stdout.isatty() else LoggingMode.PRODUCTION


def setup_third_party_logging() -> None:
    """Configure third-party library logging to avoid CLI interference."""
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    logging.getLogger("py.warnings").setLevel(logging.ERROR)


def forward_to_loguru(_logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Final structlog processor: hand the event to loguru and drop it from structlog.

    The event text becomes the loguru message and the remaining key/value pairs are
    bound as loguru ``extra`` so JSON sinks keep them structured.
    """
    event = str(event_dict.pop("event", ""))
    logger_name = event_dict.pop("logger_name", None) or "acs_database"
    level = _STRUCTLOG_LEVELS.get(method_name, "INFO")

    context = " ".join(f"{key}={value!r}" for key, value in event_dict.items())
    message = f"{event} | {context}" if context else event

    logger.bind(logger=logger_name, **event_dict).log(level, message)
    raise structlog.DropEvent


def configure_structlog() -> None:
    """Route every structlog call site through loguru."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.format_exc_info,
            forward_to_loguru,
        ],
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging(mode: str | None = None, log_level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging using loguru.

    Args:
        mode: Logging mode (interactive/production), auto-detected if None
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Custom log file path, uses default if None
    """
    if mode is None:
        mode = detect_logging_mode()

    setup_third_party_logging()

    # Set standard library logging level for compatibility with tests
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(numeric_level)

    # Remove default loguru handler
    logger.remove()
    logger.configure(extra={"logger": "acs_database"})
    configure_structlog()

    if mode == LoggingMode.INTERACTIVE:
        # Interactive mode: logs to files, no console interference with progress bars
        try:
            LOG_DIR.mkdir(exist_ok=True)
        except OSError:
            # Fall back to production mode (no file logging)
            mode = LoggingMode.PRODUCTION

    if mode == LoggingMode.PRODUCTION:
        logger.add(sys.stdout, level=log_level, format="{time} | {level} | {message}", serialize=True)
        return

    log_file_path = log_file or str(LOG_DIR / "acs-database.log")

    # Human-readable logs
    logger.add(log_file_path, level=log_level, format=_TEXT_FORMAT, rotation="10 MB", retention="7 days")

    # JSON logs for machine processing
    logger.add(
        LOG_DIR / "acs-database.json",
        level=log_level,
        format="{time} | {level} | {message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
    )

    # Errors only
    logger.add(LOG_DIR / "errors.log", level="ERROR", format=_TEXT_FORMAT, backtrace=True, diagnose=False)


def get_logging_status() -> dict[str, Any]:
    """Get current logging configuration status."""
    mode = detect_logging_mode()
    interactive = mode == LoggingMode.INTERACTIVE

    return {
        "mode": mode,
        "log_directory": str(LOG_DIR.absolute()) if LOG_DIR.exists() else None,
        "log_files": {
            "main": str(LOG_DIR / "acs-database.log") if interactive else None,
            "json": str(LOG_DIR / "acs-database.json") if interactive else None,
            "errors": str(LOG_DIR / "errors.log") if interactive else None,
        },
        "third_party_suppressed": list(THIRD_PARTY_LOGGERS),
    }
