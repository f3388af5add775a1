"""Core primitives shared by every exitguard module: errors, logging, settings."""

from exitguard.core.errors import (
    ConfigError,
    ContextStoppedError,
    EngineError,
    ErrorCategory,
    ErrorContext,
    ExitGuardError,
    GuardError,
    GuardStateError,
    JobFailedError,
    TerminationInterceptedError,
)
from exitguard.core.logging import LogContext, configure_logging, get_logger

__all__ = [
    "ConfigError",
    "ContextStoppedError",
    "EngineError",
    "ErrorCategory",
    "ErrorContext",
    "ExitGuardError",
    "GuardError",
    "GuardStateError",
    "JobFailedError",
    "TerminationInterceptedError",
    "LogContext",
    "configure_logging",
    "get_logger",
]
