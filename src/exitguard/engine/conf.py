"""Engine configuration — string key/value pairs with typed accessors.

``EngineConf`` is built with chained setters and handed to
:class:`~exitguard.engine.context.LocalContext`. Values are stored as
strings, the way they would arrive from the environment or a CLI.

Example::

    conf = EngineConf().set_app_name("demo").set_master("local[2]")
    conf.get_int(DEFAULT_PARALLELISM_KEY, 2)
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from exitguard.core.errors import ConfigError, ErrorContext

APP_NAME_KEY = "engine.app.name"
MASTER_KEY = "engine.master"
DEFAULT_PARALLELISM_KEY = "engine.default.parallelism"
EXIT_ON_FATAL_KEY = "engine.executor.exitOnFatalError"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}

# local | local[N] | local[*] | local[N,F] | local[*,F]
_LOCAL_MASTER = re.compile(r"^local(?:\[(\*|\d+)(?:\s*,\s*(\d+))?\])?$")

_MISSING = object()


@dataclass(frozen=True)
class MasterSpec:
    """Parsed master string."""

    master: str
    threads: int
    max_failures: int


def parse_master(master: str) -> MasterSpec:
    """Parse a single-process master string.

    ``local`` runs one worker thread and fails a job on the first task
    failure. ``local[N]`` uses N threads, ``local[*]`` one per CPU, and
    ``local[N,F]`` allows F attempts per task.

    Raises:
        ConfigError: For anything that is not a local master.
    """
    match = _LOCAL_MASTER.match(master.strip())
    if match is None:
        raise ConfigError(
            f"Unsupported master {master!r}: expected local, local[N], local[*] or local[N,F]",
            context=ErrorContext(master=master),
        )

    threads_raw, failures_raw = match.groups()
    if threads_raw is None:
        threads = 1
    elif threads_raw == "*":
        threads = os.cpu_count() or 1
    else:
        threads = int(threads_raw)
    max_failures = int(failures_raw) if failures_raw is not None else 1

    if threads < 1 or max_failures < 1:
        raise ConfigError(
            f"Master {master!r} must use at least one thread and one task attempt",
            context=ErrorContext(master=master),
        )
    return MasterSpec(master=master, threads=threads, max_failures=max_failures)


class EngineConf:
    """Mutable engine configuration with chained setters."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._settings: dict[str, str] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def set(self, key: str, value: Any) -> EngineConf:
        if value is None:
            raise ConfigError(f"null value for {key}")
        if isinstance(value, bool):
            value = "true" if value else "false"
        self._settings[key] = str(value)
        return self

    def set_app_name(self, name: str) -> EngineConf:
        return self.set(APP_NAME_KEY, name)

    def set_master(self, master: str) -> EngineConf:
        return self.set(MASTER_KEY, master)

    def contains(self, key: str) -> bool:
        return key in self._settings

    def get(self, key: str, default: Any = _MISSING) -> str:
        """Return the raw value for ``key``.

        Raises:
            ConfigError: If ``key`` is unset and no default was given.
        """
        if key in self._settings:
            return self._settings[key]
        if default is _MISSING:
            raise ConfigError(f"Configuration key {key!r} is not set")
        return default

    def get_int(self, key: str, default: Any = _MISSING) -> int:
        raw = self.get(key, default)
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} must be an integer, got {raw!r}", cause=exc) from exc

    def get_bool(self, key: str, default: Any = _MISSING) -> bool:
        raw = self.get(key, default)
        if isinstance(raw, bool):
            return raw
        lowered = str(raw).strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ConfigError(f"{key} must be a boolean, got {raw!r}")

    @property
    def app_name(self) -> str | None:
        return self._settings.get(APP_NAME_KEY)

    @property
    def master(self) -> str | None:
        return self._settings.get(MASTER_KEY)

    def copy(self) -> EngineConf:
        return EngineConf(self._settings)

    def to_dict(self) -> dict[str, str]:
        return dict(self._settings)

    def __repr__(self) -> str:
        return f"EngineConf({self._settings!r})"
