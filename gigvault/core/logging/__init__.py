"""
GigVault Logging Infrastructure

Exports the structured logging lifecycle, logger factory and the
operation-context helpers.
"""

from gigvault.core.logging.logger import (
    LogContext,
    LoggerConfig,
    dropped_records,
    get_log_context,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "get_log_context",
    "dropped_records",
    "LoggerConfig",
]
