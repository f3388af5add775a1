"""Tests for exitguard.core.errors — hierarchy, context, chaining."""

import pytest

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


class TestErrorContext:
    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(app_name="demo", task_id=0)
        assert ctx.to_dict() == {"app_name": "demo", "task_id": 0}

    def test_metadata_is_merged(self):
        ctx = ErrorContext(master="local")
        ctx.metadata["running_app"] = "other"
        assert ctx.to_dict() == {"master": "local", "running_app": "other"}


class TestExitGuardError:
    def test_defaults(self):
        err = ExitGuardError("boom")
        assert err.message == "boom"
        assert err.category is ErrorCategory.INTERNAL
        assert err.cause is None
        assert err.to_dict() == {
            "error_type": "ExitGuardError",
            "message": "boom",
            "category": "INTERNAL",
        }

    def test_cause_is_chained(self):
        original = KeyError("missing")
        err = ExitGuardError("wrapped", cause=original)
        assert err.__cause__ is original
        assert err.to_dict()["cause"] == "KeyError: 'missing'"

    def test_with_context_sets_fields_and_metadata(self):
        err = EngineError("failed").with_context(app_name="demo", job_id=3, stage="0.0")
        assert err.context.app_name == "demo"
        assert err.context.job_id == 3
        assert err.context.metadata == {"stage": "0.0"}
        assert err.to_dict()["context"] == {"app_name": "demo", "job_id": 3, "stage": "0.0"}

    def test_repr(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls, base, category",
        [
            (ConfigError, ExitGuardError, ErrorCategory.CONFIG),
            (GuardStateError, GuardError, ErrorCategory.GUARD),
            (ContextStoppedError, EngineError, ErrorCategory.ENGINE),
            (JobFailedError, EngineError, ErrorCategory.ENGINE),
        ],
    )
    def test_categories(self, cls, base, category):
        err = cls("x")
        assert isinstance(err, base)
        assert isinstance(err, Exception)
        assert err.category is category

    def test_termination_intercepted_carries_status(self):
        err = TerminationInterceptedError("Caught process exit call with status: 50", status=50)
        assert err.status == 50
        assert err.category is ErrorCategory.GUARD
        assert err.to_dict()["status"] == 50

    def test_job_failed_can_wrap_base_exception(self):
        fatal = KeyboardInterrupt()
        err = JobFailedError("Job aborted", cause=fatal)
        assert err.cause is fatal
        assert err.__cause__ is fatal
