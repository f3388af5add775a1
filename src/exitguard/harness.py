"""Exit-interception harness — run a workload under a guard and judge it.

Manifesto:
"The engine did not exit the process" is an absence of behaviour, and
absence is easy to fake: an engine may try to exit, have the guard refuse,
then swallow the refusal and carry on. The harness therefore checks two
things. It checks what came out of the call, and it checks what the
guard recorded while the call ran.

ARCHITECTURE
────────────
::

    ExitInterceptionHarness.run(workload)
      ├── guard.install()
      ├── workload()                       ─ opaque, may raise
      │     ├── returns                    → COMPLETED
      │     ├── TerminationInterceptedError→ INTERCEPTED_TERMINATION
      │     ├── JobFailedError             → WRAPPED_FAILURE
      │     └── other Exception            → OTHER_FAILURE
      ├── guard.uninstall(previous)        ─ finally, every path
      └── HarnessOutcome(kind, error, first attempt)

    ExitInterceptionHarness.verify(outcome)
      ├── INTERCEPTED_TERMINATION  → AssertionError
      └── attempt recorded         → AssertionError

Related modules:
    guard.py      — NoExitGuard
    scenarios.py  — the fatal foreach workload

Tags:
    exitguard, harness, test-harness, fatal-error

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from exitguard.core.errors import JobFailedError, TerminationInterceptedError
from exitguard.core.logging import get_logger
from exitguard.core.settings import ExitGuardSettings, get_settings
from exitguard.guard import NoExitGuard, TerminationAttempt

logger = get_logger(__name__)


class OutcomeKind(str, Enum):
    """How the monitored call ended."""

    COMPLETED = "completed"
    INTERCEPTED_TERMINATION = "intercepted_termination"
    WRAPPED_FAILURE = "wrapped_failure"
    OTHER_FAILURE = "other_failure"


def classify_error(exc: Exception) -> OutcomeKind:
    """Map an exception raised by the monitored call to an :class:`OutcomeKind`."""
    if isinstance(exc, TerminationInterceptedError):
        return OutcomeKind.INTERCEPTED_TERMINATION
    if isinstance(exc, JobFailedError):
        return OutcomeKind.WRAPPED_FAILURE
    return OutcomeKind.OTHER_FAILURE


@dataclass(frozen=True)
class HarnessOutcome:
    """Everything the harness observed for one workload run."""

    kind: OutcomeKind
    error: Exception | None = None
    attempt: TerminationAttempt | None = None
    attempt_count: int = 0

    @property
    def passed(self) -> bool:
        return self.kind is not OutcomeKind.INTERCEPTED_TERMINATION and self.attempt is None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "passed": self.passed,
            "attempt_count": self.attempt_count,
        }
        if self.error is not None:
            result["error_type"] = type(self.error).__name__
            result["error"] = str(self.error)
            cause = self.error.__cause__
            if cause is not None:
                result["cause_type"] = type(cause).__name__
        if self.attempt is not None:
            result["first_attempt"] = {
                "status": self.attempt.status,
                "thread": self.attempt.thread_name,
                "recorded_at": self.attempt.recorded_at.isoformat(),
            }
        return result


class ExitInterceptionHarness:
    """Runs workloads under a :class:`NoExitGuard` and asserts nothing tried to exit.

    Example:
        >>> harness = ExitInterceptionHarness()
        >>> harness.assert_no_exit(lambda: local_mode_fatal_foreach(conf))
    """

    def __init__(
        self,
        settings: ExitGuardSettings | None = None,
        guard_factory: Callable[..., NoExitGuard] = NoExitGuard,
    ) -> None:
        self.settings = settings or get_settings()
        self._guard_factory = guard_factory

    def run(self, workload: Callable[[], Any]) -> HarnessOutcome:
        """Run ``workload`` with a guard installed and report what happened.

        The previous authority is restored before this method returns or
        raises. Errors outside ``Exception`` are not classified and
        propagate after restoration.
        """
        guard = self._guard_factory(
            patch_interpreter_exits=self.settings.patch_interpreter_exits
        )
        previous = guard.install()
        kind = OutcomeKind.COMPLETED
        error: Exception | None = None
        try:
            workload()
        except Exception as exc:
            error = exc
            kind = classify_error(exc)
        finally:
            guard.uninstall(previous)

        outcome = HarnessOutcome(
            kind=kind,
            error=error,
            attempt=guard.first_recorded_attempt,
            attempt_count=guard.attempt_count,
        )
        logger.info(
            "harness.outcome",
            kind=kind.value,
            passed=outcome.passed,
            attempts=outcome.attempt_count,
            error_type=type(error).__name__ if error is not None else None,
        )
        return outcome

    def verify(self, outcome: HarnessOutcome) -> None:
        """Fail with ``AssertionError`` if the outcome shows an exit attempt."""
        if outcome.kind is OutcomeKind.INTERCEPTED_TERMINATION:
            raise AssertionError(
                "Caught TerminationInterceptedError from process exit call attempt"
            ) from outcome.error
        if outcome.attempt is not None:
            raise AssertionError(
                f"Guard captured process exit attempt with status {outcome.attempt.status} "
                f"from thread {outcome.attempt.thread_name}"
            ) from outcome.attempt.error

    def assert_no_exit(self, workload: Callable[[], Any]) -> HarnessOutcome:
        """Run ``workload`` and verify it; returns the outcome when it passes."""
        outcome = self.run(workload)
        self.verify(outcome)
        return outcome
