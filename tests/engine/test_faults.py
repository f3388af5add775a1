"""Tests for fatal error classification and the uncaught exception handler."""

import pytest

from exitguard.engine.faults import (
    OOM,
    UNCAUGHT_EXCEPTION,
    UNCAUGHT_EXCEPTION_TWICE,
    UncaughtExceptionHandler,
    is_fatal_error,
)
from exitguard.scenarios import FatalLinkageError


class TestIsFatalError:
    @pytest.mark.parametrize(
        "exc",
        [
            FatalLinkageError("fake"),
            SystemExit(1),
            KeyboardInterrupt(),
            GeneratorExit(),
            MemoryError(),
            RecursionError(),
        ],
    )
    def test_fatal(self, exc):
        assert is_fatal_error(exc)

    @pytest.mark.parametrize(
        "exc",
        [ValueError("bad row"), ImportError("no module"), RuntimeError(), KeyError("k")],
    )
    def test_not_fatal(self, exc):
        assert not is_fatal_error(exc)


class Refused(Exception):
    pass


class TestUncaughtExceptionHandler:
    def test_exits_once_when_allowed(self):
        calls = []
        UncaughtExceptionHandler(exit_func=calls.append).handle(FatalLinkageError("x"))
        assert calls == [UNCAUGHT_EXCEPTION]

    def test_memory_error_uses_oom_code(self):
        calls = []
        UncaughtExceptionHandler(exit_func=calls.append).handle(MemoryError())
        assert calls == [OOM]

    def test_retries_once_then_gives_up(self):
        calls = []

        def refuse(status):
            calls.append(status)
            raise Refused(status)

        UncaughtExceptionHandler(exit_func=refuse).handle(FatalLinkageError("x"), "worker-1")
        assert calls == [UNCAUGHT_EXCEPTION, UNCAUGHT_EXCEPTION_TWICE]

    def test_second_attempt_succeeding_stops(self):
        calls = []

        def refuse_first(status):
            calls.append(status)
            if len(calls) == 1:
                raise Refused(status)

        UncaughtExceptionHandler(exit_func=refuse_first).handle(RecursionError())
        assert calls == [UNCAUGHT_EXCEPTION, UNCAUGHT_EXCEPTION_TWICE]
