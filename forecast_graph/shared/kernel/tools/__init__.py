from .logger import (
    bind_log_context,
    clear_log_context,
    get_log_context,
    get_logger,
    log_context,
    log_event,
    sanitize_for_logging,
)

__all__ = [
    "get_logger",
    "bind_log_context",
    "get_log_context",
    "clear_log_context",
    "log_context",
    "log_event",
    "sanitize_for_logging",
]
