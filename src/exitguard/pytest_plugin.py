"""pytest fixtures for exit-interception tests.

Registered through the ``pytest11`` entry point, so installing exitguard
makes the fixtures available everywhere::

    def test_job_does_not_exit(exit_guard):
        run_job_that_may_fail()
        assert exit_guard.first_recorded_attempt is None
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from exitguard.core.settings import get_settings
from exitguard.guard import NoExitGuard
from exitguard.harness import ExitInterceptionHarness


@pytest.fixture
def exit_guard() -> Iterator[NoExitGuard]:
    """Install a :class:`NoExitGuard` for one test; fail the test if it records an exit."""
    guard = NoExitGuard(patch_interpreter_exits=get_settings().patch_interpreter_exits)
    previous = guard.install()
    try:
        yield guard
    finally:
        guard.uninstall(previous)

    attempt = guard.first_recorded_attempt
    if attempt is not None:
        pytest.fail(
            f"Guard captured process exit attempt with status {attempt.status} "
            f"from thread {attempt.thread_name}",
            pytrace=False,
        )


@pytest.fixture
def exit_harness() -> ExitInterceptionHarness:
    """An :class:`ExitInterceptionHarness` built from the current settings."""
    return ExitInterceptionHarness(get_settings())
