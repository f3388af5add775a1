"""
Shared pytest fixtures and configuration for exitguard tests.

This module provides:
- Process-authority and exit-hook restoration checks after every test
- Settings cache and structlog resets for isolation
- Cleanup of a leaked running LocalContext
- The exit_guard / exit_harness fixtures from the pytest plugin
"""

import os
import sys
from pathlib import Path

import pytest
import structlog

# Ensure exitguard package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from exitguard import authority
from exitguard.core import settings as settings_module
from exitguard.core.logging import clear_context
from exitguard.core.settings import ExitGuardSettings
from exitguard.engine import EngineConf, get_active_context
from exitguard.pytest_plugin import exit_guard, exit_harness  # noqa: F401


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def process_authority_restored():
    """Fail any test that leaves the process-wide authority or exit hooks replaced."""
    before = authority.get_current_authority()
    sys_exit, os_exit = sys.exit, os._exit
    yield
    leaked_authority = authority.get_current_authority()
    leaked_hooks = sys.exit is not sys_exit or os._exit is not os_exit

    authority.set_current_authority(before)
    sys.exit, os._exit = sys_exit, os_exit

    assert leaked_authority is before, f"authority leaked: {leaked_authority!r}"
    assert not leaked_hooks, "sys.exit / os._exit were not restored"


@pytest.fixture(autouse=True)
def engine_isolation():
    """Stop a LocalContext a failing test left running."""
    yield
    ctx = get_active_context()
    if ctx is not None:
        ctx.stop()


@pytest.fixture(autouse=True)
def settings_and_logging_isolation():
    """Drop cached settings and structlog configuration between tests."""
    settings_module._settings_cache = None
    yield
    settings_module._settings_cache = None
    clear_context()
    structlog.reset_defaults()


# =============================================================================
# Common Fixtures
# =============================================================================


@pytest.fixture
def settings() -> ExitGuardSettings:
    """Default settings, ignoring any .env file on disk."""
    return ExitGuardSettings(_env_file=None)


@pytest.fixture
def local_conf() -> EngineConf:
    """Minimal single-process engine configuration."""
    return EngineConf().set_app_name("StackOverflowErrorCausesSystemExitLocalMode").set_master("local")
