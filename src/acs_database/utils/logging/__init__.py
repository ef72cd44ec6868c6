# ABOUTME: Logging configuration, progress tracking, and output formatting
# ABOUTME: Provides rich console progress and structured logging for the pipeline

from .config import LoggingMode, configure_logging, detect_logging_mode, get_logging_status
from .progress import PhaseProgress
from .utils import LogContext, get_logger, log_api_call, with_phase_context

__all__ = [
    # Configuration
    "LoggingMode",
    "configure_logging",
    "detect_logging_mode",
    "get_logging_status",
    # Progress
    "PhaseProgress",
    # Utilities
    "LogContext",
    "get_logger",
    "log_api_call",
    "with_phase_context",
]
