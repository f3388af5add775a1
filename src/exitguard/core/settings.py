"""Runtime settings for exitguard.

Configuration is read from ``EXITGUARD_*`` environment variables and an
optional ``.env`` file, validated by pydantic at load time.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    The harness is usually run from CI, where flipping a behaviour (JSON
    logs, the regression exit toggle) through the environment is simpler
    than editing code.

Examples:
    >>> from exitguard.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.master
    'local'

Tags:
    settings, configuration, pydantic, environment, exitguard

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExitGuardSettings(BaseSettings):
    """Settings shared by the harness, the engine and the CLI.

    Fields
    ──────
    log_level               : structlog log level
    json_logs               : JSON output (None = auto-detect from TTY)
    app_name                : Engine application name for harness scenarios
    master                  : Engine master string (``local``, ``local[N]``, ``local[N,F]``)
    exit_on_fatal_error     : Let the engine's uncaught handler try to exit the process
    patch_interpreter_exits : Route ``sys.exit`` / ``os._exit`` through the guard
    """

    model_config = SettingsConfigDict(
        env_prefix="EXITGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Engine ───────────────────────────────────────────────────
    app_name: str = "StackOverflowErrorCausesSystemExitLocalMode"
    master: str = "local"
    exit_on_fatal_error: bool = Field(
        default=False,
        description="Invoke the uncaught exception handler on fatal task errors",
    )

    # ── Guard ────────────────────────────────────────────────────
    patch_interpreter_exits: bool = True

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return value


_settings_cache: ExitGuardSettings | None = None


def get_settings(*, _force_reload: bool = False) -> ExitGuardSettings:
    """Load, validate, and cache an :class:`ExitGuardSettings` instance.

    Parameters
    ----------
    _force_reload:
        Bypass cache and re-read the environment.
    """
    global _settings_cache
    if _settings_cache is None or _force_reload:
        _settings_cache = ExitGuardSettings()
    return _settings_cache
