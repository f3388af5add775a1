"""Tests for NoExitGuard — lifecycle, first-attempt slot, thread safety."""

import os
import sys
import threading

import pytest

from exitguard.authority import (
    SYSTEM_AUTHORITY,
    Permission,
    exit_hooks_installed,
    exit_process,
    get_current_authority,
)
from exitguard.core.errors import GuardStateError, TerminationInterceptedError
from exitguard.guard import GuardState, NoExitGuard, no_exit_guard


class TestLifecycle:
    def test_new_guard_is_uninstalled(self):
        guard = NoExitGuard()
        assert guard.state is GuardState.UNINSTALLED
        assert guard.first_recorded_attempt is None
        assert guard.attempt_count == 0

    def test_install_replaces_authority(self):
        guard = NoExitGuard()
        previous = guard.install()
        try:
            assert previous is SYSTEM_AUTHORITY
            assert guard.previous_authority is SYSTEM_AUTHORITY
            assert get_current_authority() is guard
            assert guard.state is GuardState.INSTALLED
            assert exit_hooks_installed()
        finally:
            guard.uninstall(previous)

    def test_uninstall_restores_everything(self):
        sys_exit, os_exit = sys.exit, os._exit
        guard = NoExitGuard()
        previous = guard.install()
        guard.uninstall(previous)
        assert get_current_authority() is SYSTEM_AUTHORITY
        assert sys.exit is sys_exit
        assert os._exit is os_exit
        assert guard.state is GuardState.UNINSTALLED_FINAL

    def test_install_then_uninstall_records_nothing(self):
        guard = NoExitGuard()
        guard.uninstall(guard.install())
        assert guard.first_recorded_attempt is None
        assert get_current_authority() is SYSTEM_AUTHORITY

    def test_uninstall_defaults_to_captured_previous(self):
        guard = NoExitGuard()
        guard.install()
        guard.uninstall()
        assert get_current_authority() is SYSTEM_AUTHORITY

    def test_uninstall_twice_rejected(self):
        guard = NoExitGuard()
        guard.uninstall(guard.install())
        with pytest.raises(GuardStateError):
            guard.uninstall()

    def test_uninstall_before_install_rejected(self):
        with pytest.raises(GuardStateError):
            NoExitGuard().uninstall()

    def test_reinstall_rejected(self):
        guard = NoExitGuard()
        guard.uninstall(guard.install())
        with pytest.raises(GuardStateError):
            guard.install()

    def test_without_interpreter_patching(self):
        sys_exit = sys.exit
        with NoExitGuard(patch_interpreter_exits=False) as guard:
            assert get_current_authority() is guard
            assert sys.exit is sys_exit
            assert not exit_hooks_installed()

    def test_nested_guards_restore_in_order(self):
        sys_exit = sys.exit
        with NoExitGuard() as outer:
            with NoExitGuard() as inner:
                assert get_current_authority() is inner
            assert get_current_authority() is outer
            assert exit_hooks_installed()
        assert get_current_authority() is SYSTEM_AUTHORITY
        assert sys.exit is sys_exit


class TestInterception:
    def test_check_exit_raises_and_records(self):
        with no_exit_guard() as guard:
            with pytest.raises(TerminationInterceptedError, match="status: 50") as info:
                exit_process(50)
        attempt = guard.first_recorded_attempt
        assert attempt is not None
        assert attempt.status == 50
        assert attempt.error is info.value
        assert attempt.thread_name == threading.current_thread().name
        assert guard.state is GuardState.UNINSTALLED_FINAL

    def test_first_attempt_wins(self):
        guard = NoExitGuard()
        previous = guard.install()
        try:
            for status in (50, 51, 52):
                with pytest.raises(TerminationInterceptedError):
                    guard.check_exit(status)
            assert guard.state is GuardState.ATTEMPT_RECORDED
        finally:
            guard.uninstall(previous)
        assert guard.first_recorded_attempt.status == 50
        assert guard.attempt_count == 3

    def test_check_permission_is_noop(self):
        with no_exit_guard() as guard:
            assert guard.check_permission(Permission("setIO")) is None
            assert guard.check_permission(Permission("readFile"), context=object()) is None
        assert guard.first_recorded_attempt is None

    def test_interpreter_exits_are_intercepted(self):
        with no_exit_guard() as guard:
            with pytest.raises(TerminationInterceptedError):
                sys.exit()
            with pytest.raises(TerminationInterceptedError):
                os._exit(7)
        assert guard.first_recorded_attempt.status == 0
        assert guard.attempt_count == 2

    def test_attempt_from_worker_thread(self):
        errors = []

        def worker():
            try:
                sys.exit(2)
            except TerminationInterceptedError as exc:
                errors.append(exc)

        with no_exit_guard() as guard:
            thread = threading.Thread(target=worker, name="exit-worker")
            thread.start()
            thread.join(timeout=10)

        assert len(errors) == 1
        assert guard.first_recorded_attempt.thread_name == "exit-worker"
        assert guard.first_recorded_attempt.error is errors[0]

    def test_context_manager_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with NoExitGuard():
                raise RuntimeError("workload failed")
        assert get_current_authority() is SYSTEM_AUTHORITY
        assert not exit_hooks_installed()


class TestThreadSafety:
    def test_concurrent_attempts_record_exactly_one(self):
        workers = 16
        barrier = threading.Barrier(workers)
        raised = []
        lock = threading.Lock()

        def attempt(status):
            barrier.wait(timeout=10)
            try:
                exit_process(status)
            except TerminationInterceptedError as exc:
                with lock:
                    raised.append(exc)

        with no_exit_guard() as guard:
            threads = [
                threading.Thread(target=attempt, args=(100 + i,)) for i in range(workers)
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=10)

        assert len(raised) == workers
        assert guard.attempt_count == workers
        first = guard.first_recorded_attempt
        assert first is not None
        assert first.error in raised
        assert first.status == first.error.status
