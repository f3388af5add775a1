"""
Structured error types for exitguard.

Every error raised by the guard, the harness or the engine derives from
``ExitGuardError`` and carries a category, structured context and an
optional chained cause, so failures can be logged and asserted on without
parsing messages.

Manifesto:
    - **Typed Error Hierarchy:** Guard, engine and config failures are distinct types
    - **Rich Context:** Errors carry app/master/job/task metadata for logging
    - **Error Chaining:** The original task error stays reachable as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                     ExitGuardError                        │
        │              (category, context, cause)                   │
        ├──────────────────────────────────────────────────────────┤
        │  ConfigError      GuardError              EngineError     │
        │  (CONFIG)         (GUARD)                 (ENGINE)        │
        │                      │                       │            │
        │              GuardStateError         ContextStoppedError  │
        │              TerminationIntercepted  JobFailedError       │
        └──────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Catch ``TerminationInterceptedError`` inside engine code and continue
    ✅ DO: Let it surface, or record it, so the harness can see the attempt

    ❌ DON'T: Wrap a task failure without ``cause=``
    ✅ DO: Chain the original error so assertions can inspect it

Tags:
    error-handling, exception-hierarchy, error-context, exitguard

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    CONFIG = "CONFIG"        # Invalid settings or engine configuration
    GUARD = "GUARD"          # Guard lifecycle and intercepted terminations
    ENGINE = "ENGINE"        # Job, task and context failures
    INTERNAL = "INTERNAL"    # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set show up in ``to_dict()``; anything that has no
    dedicated field goes into ``metadata``.

    Examples:
        >>> ctx = ErrorContext(app_name="demo", master="local", task_id=2)
        >>> ctx.to_dict()
        {'app_name': 'demo', 'master': 'local', 'task_id': 2}
    """

    app_name: str | None = None
    master: str | None = None
    job_id: int | None = None
    task_id: int | None = None
    partition: int | None = None
    attempt: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["app_name", "master", "job_id", "task_id", "partition", "attempt"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ExitGuardError(Exception):
    """
    Base exception for all exitguard errors.

    Subclasses set ``default_category``; callers may override it per
    instance. When ``cause`` is given it is also chained as ``__cause__``
    so tracebacks show the original failure.

    Examples:
        >>> err = ExitGuardError("boom")
        >>> err.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> err.with_context(app_name="demo").context.app_name
        'demo'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ExitGuardError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(ExitGuardError):
    """Invalid or missing configuration (bad master string, no app name)."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# GUARD
# =============================================================================


class GuardError(ExitGuardError):
    """Base class for guard failures."""

    default_category = ErrorCategory.GUARD


class GuardStateError(GuardError):
    """A guard lifecycle method was called in the wrong state."""


class TerminationInterceptedError(GuardError):
    """
    Raised by the guard in place of a process exit.

    The guard raises this from ``check_exit`` every time something tries to
    terminate the process. Seeing it escape a monitored call means the
    monitored code attempted to exit.

    Attributes:
        status: Exit status the caller asked for
    """

    def __init__(self, message: str, *, status: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["status"] = self.status
        return result


# =============================================================================
# ENGINE
# =============================================================================


class EngineError(ExitGuardError):
    """Base class for engine failures."""

    default_category = ErrorCategory.ENGINE


class ContextStoppedError(EngineError):
    """Operation attempted on a stopped engine context."""


class JobFailedError(EngineError):
    """
    A job was aborted because one of its tasks kept failing.

    This is the generic execution failure a caller sees when a task raises,
    fatal or not. ``cause`` is the error from the last failed attempt.
    """


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ExitGuardError",
    "ConfigError",
    "GuardError",
    "GuardStateError",
    "TerminationInterceptedError",
    "EngineError",
    "ContextStoppedError",
    "JobFailedError",
]
