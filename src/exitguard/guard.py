"""No-exit guard — an authority that blocks and records process exits.

Manifesto:
A test that asserts "the engine never tried to exit" needs something in
the process that sees every exit attempt, refuses it, and remembers it.
``NoExitGuard`` is that authority. It raises
``TerminationInterceptedError`` on every attempt and keeps the first one,
so an attempt that the monitored code swallowed is still on record.

ARCHITECTURE
────────────
::

    UNINSTALLED ──install()──► INSTALLED ──check_exit()──► ATTEMPT_RECORDED
         │                        │                          │   ▲   │
         │                        │                          │   └───┘ (later attempts)
         │                        └──────uninstall()─────────┴──► UNINSTALLED_FINAL
         └── uninstall() rejected (GuardStateError)

Related modules:
    authority.py  — process-wide authority registry and exit hooks
    harness.py    — drives a workload under the guard and asserts on it

Tags:
    exitguard, guard, process-exit, test-harness

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from exitguard.authority import (
    Authority,
    ExitHooks,
    Permission,
    install_exit_hooks,
    set_current_authority,
)
from exitguard.core.errors import GuardStateError, TerminationInterceptedError
from exitguard.core.logging import get_logger

logger = get_logger(__name__)


class GuardState(str, Enum):
    """Lifecycle states of a :class:`NoExitGuard`."""

    UNINSTALLED = "UNINSTALLED"
    INSTALLED = "INSTALLED"
    ATTEMPT_RECORDED = "ATTEMPT_RECORDED"
    UNINSTALLED_FINAL = "UNINSTALLED_FINAL"


@dataclass(frozen=True)
class TerminationAttempt:
    """The first exit attempt a guard intercepted."""

    status: int
    error: TerminationInterceptedError
    thread_name: str
    recorded_at: datetime


class NoExitGuard:
    """Authority that refuses every process exit and records the first one.

    Example:
        >>> guard = NoExitGuard()
        >>> previous = guard.install()
        >>> try:
        ...     run_engine_job()
        ... finally:
        ...     guard.uninstall(previous)
        >>> assert guard.first_recorded_attempt is None
    """

    def __init__(self, *, patch_interpreter_exits: bool = True) -> None:
        """Create an uninstalled guard.

        Args:
            patch_interpreter_exits: Also route ``sys.exit`` / ``os._exit``
                through the guard while it is installed.
        """
        self.patch_interpreter_exits = patch_interpreter_exits
        self._lock = threading.Lock()
        self._state = GuardState.UNINSTALLED
        self._previous: Authority | None = None
        self._hooks: ExitHooks | None = None
        self._first_attempt: TerminationAttempt | None = None
        self._attempt_count = 0

    # ── State ────────────────────────────────────────────────────────

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def previous_authority(self) -> Authority | None:
        return self._previous

    @property
    def first_recorded_attempt(self) -> TerminationAttempt | None:
        """The first intercepted exit attempt, or ``None`` if there was none."""
        return self._first_attempt

    @property
    def attempt_count(self) -> int:
        """Number of exit attempts intercepted so far, including the first."""
        return self._attempt_count

    # ── Lifecycle ────────────────────────────────────────────────────

    def install(self) -> Authority:
        """Make this guard the process-wide authority.

        Returns:
            The authority that was active before, to pass to :meth:`uninstall`.

        Raises:
            GuardStateError: If the guard was already installed or retired.
        """
        with self._lock:
            if self._state is not GuardState.UNINSTALLED:
                raise GuardStateError(f"Cannot install guard in state {self._state.value}")
            self._state = GuardState.INSTALLED

        self._previous = set_current_authority(self)
        if self.patch_interpreter_exits:
            self._hooks = install_exit_hooks()

        logger.info(
            "guard.installed",
            previous=type(self._previous).__name__,
            patch_interpreter_exits=self.patch_interpreter_exits,
        )
        return self._previous

    def uninstall(self, previous: Authority | None = None) -> None:
        """Restore ``previous`` (default: the authority captured by :meth:`install`).

        Raises:
            GuardStateError: If the guard was never installed or already uninstalled.
        """
        with self._lock:
            if self._state in (GuardState.UNINSTALLED, GuardState.UNINSTALLED_FINAL):
                raise GuardStateError(f"Cannot uninstall guard in state {self._state.value}")
            self._state = GuardState.UNINSTALLED_FINAL

        try:
            set_current_authority(previous if previous is not None else self._previous)
        finally:
            if self._hooks is not None:
                self._hooks.restore()
                self._hooks = None

        logger.info("guard.uninstalled", attempts=self._attempt_count)

    # ── Authority protocol ───────────────────────────────────────────

    def check_exit(self, status: int) -> None:
        """Refuse a process exit. Never returns normally.

        Raises:
            TerminationInterceptedError: Always.
        """
        error = TerminationInterceptedError(
            f"Caught process exit call with status: {status}", status=status
        )
        thread_name = threading.current_thread().name

        with self._lock:
            self._attempt_count += 1
            attempt_number = self._attempt_count
            if self._first_attempt is None:
                self._first_attempt = TerminationAttempt(
                    status=status,
                    error=error,
                    thread_name=thread_name,
                    recorded_at=datetime.now(UTC),
                )
                if self._state is GuardState.INSTALLED:
                    self._state = GuardState.ATTEMPT_RECORDED

        logger.warning(
            "guard.exit_intercepted",
            status=status,
            thread=thread_name,
            attempt=attempt_number,
        )
        raise error

    def check_permission(self, permission: Permission, context: Any = None) -> None:
        # other than exit, we don't care
        return None

    # ── Context manager ──────────────────────────────────────────────

    def __enter__(self) -> NoExitGuard:
        self.install()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.uninstall()

    def __repr__(self) -> str:
        return f"NoExitGuard(state={self._state.value}, attempts={self._attempt_count})"


@contextmanager
def no_exit_guard(*, patch_interpreter_exits: bool = True) -> Iterator[NoExitGuard]:
    """Install a :class:`NoExitGuard` for the duration of the block."""
    guard = NoExitGuard(patch_interpreter_exits=patch_interpreter_exits)
    previous = guard.install()
    try:
        yield guard
    finally:
        guard.uninstall(previous)


__all__ = [
    "GuardState",
    "NoExitGuard",
    "TerminationAttempt",
    "no_exit_guard",
]
