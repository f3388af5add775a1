"""Fatal-error workloads for the local engine.

The reference scenario parallelizes ``["One", "Two", "Three"]`` and runs
``foreach`` with a callback that raises a fatal error instead of doing
work. A correctly behaving local engine reports the failure as a
``JobFailedError`` and leaves the process alone.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from exitguard.core.settings import ExitGuardSettings, get_settings
from exitguard.engine import EXIT_ON_FATAL_KEY, EngineConf, LocalContext

DEFAULT_ITEMS = ("One", "Two", "Three")


class FatalLinkageError(BaseException):
    """A class-not-found style linkage failure.

    Derives from ``BaseException`` so ``except Exception`` handlers do not
    mistake it for a recoverable error.
    """


class Fault(str, Enum):
    """Fault injected by :func:`fatal_callback`."""

    LINKAGE = "linkage"
    RECURSION = "recursion"
    EXIT = "exit"
    NONE = "none"


def _recurse(item: Any) -> Any:
    return _recurse(item)


def fatal_callback(fault: Fault | str = Fault.LINKAGE, target: Any = None) -> Callable[[Any], None]:
    """Build a ``foreach`` callback that injects ``fault``.

    Args:
        fault: What to raise (see :class:`Fault`)
        target: Only fail on this item; ``None`` fails on every item
    """
    fault = Fault(fault)

    def call(item: Any) -> None:
        if target is not None and item != target:
            return
        if fault is Fault.LINKAGE:
            raise FatalLinkageError(f"fake FatalLinkageError while processing {item!r}")
        if fault is Fault.RECURSION:
            _recurse(item)
        elif fault is Fault.EXIT:
            sys.exit(1)

    return call


def build_conf(settings: ExitGuardSettings | None = None) -> EngineConf:
    """Engine configuration for harness scenarios, taken from settings."""
    settings = settings or get_settings()
    return (
        EngineConf()
        .set_app_name(settings.app_name)
        .set_master(settings.master)
        .set(EXIT_ON_FATAL_KEY, settings.exit_on_fatal_error)
    )


def local_mode_fatal_foreach(
    conf: EngineConf,
    fault: Fault | str = Fault.LINKAGE,
    items: Iterable[Any] = DEFAULT_ITEMS,
    target: Any = None,
) -> None:
    """Run ``foreach`` over ``items`` in a fresh local context with a faulty callback."""
    with LocalContext(conf) as ctx:
        ctx.parallelize(items).foreach(fatal_callback(fault, target))
