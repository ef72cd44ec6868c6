# ABOUTME: Logger utilities with context binding and remote call tracking decorators
# ABOUTME: Provides get_logger function and context managers for consistent structured logging

import functools
import time
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance with automatic module detection.

    Args:
        name: Logger name, auto-detected from caller if None

    Returns:
        Configured structlog logger instance
    """
    if name is None:
        import inspect

        frame = inspect.currentframe()
        if frame and frame.f_back:
            # Get the module name of the caller
            name = frame.f_back.f_globals.get("__name__", "unknown")

    name = name or "acs_database"
    # Bound as an initial value; forward_to_loguru reads it back
    return structlog.get_logger(name, logger_name=name)


def generate_operation_id() -> str:
    """Generate a unique operation ID for tracking requests."""
    return str(uuid.uuid4())[:8]


def log_api_call(api_name: str, **context) -> Callable[[F], F]:
    """Decorator to log remote calls with timing details.

    The first string argument that looks like a URL or page identifier is bound to
    the log record so failures can be traced back to the page that caused them.

    Args:
        api_name: Name of the remote endpoint being called
        **context: Additional context for the call

    Returns:
        Decorated coroutine function with call logging
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            call_id = generate_operation_id()

            target = kwargs.get("identifier")
            if target is None:
                target = next((arg for arg in args if isinstance(arg, str)), None)

            bound_logger = logger.bind(api_name=api_name, call_id=call_id, target=target, **context)

            bound_logger.debug(f"Call to {api_name}")
            start_time = time.time()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                bound_logger.warning(
                    f"Call to {api_name} failed",
                    duration_seconds=round(time.time() - start_time, 3),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            bound_logger.debug(f"Call to {api_name} finished", duration_seconds=round(time.time() - start_time, 3))
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


class LogContext:
    """Context manager for binding logger context."""

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self.logger = logger
        self.context = context
        self.bound_logger = None

    def __enter__(self) -> structlog.stdlib.BoundLogger:
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.bound_logger is not None:
            self.bound_logger.error("Context operation failed", error=str(exc_val), error_type=exc_type.__name__)


def with_phase_context(phase: str, **context) -> LogContext:
    """Create a logging context for one pipeline phase.

    Args:
        phase: Phase name (getnames, backlinks, scrape, cross)
        **context: Additional context to bind

    Returns:
        LogContext manager with phase context
    """
    logger = get_logger("acs_database.core.pipeline")
    operation_id = generate_operation_id()
    return LogContext(logger, phase=phase, operation_id=operation_id, **context)
