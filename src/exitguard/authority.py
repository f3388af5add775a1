"""Process-wide Authority — who decides whether the process may exit.

Manifesto:
Python has no security manager, so "the process tried to exit" cannot be
observed from outside the code that exits. This module gives the process
a single, swappable authority that every termination path consults first.
The engine terminates only through :func:`exit_process`; direct calls to
``sys.exit`` / ``os._exit`` are routed through the same authority while
:func:`install_exit_hooks` is in effect.

ARCHITECTURE
────────────
::

    get_current_authority() ──► Authority (Protocol)
    set_current_authority(a)      ├── .check_exit(status)
                                  └── .check_permission(permission, context)

    exit_process(status)
      ├── current.check_exit(status)   ─ may raise to veto
      └── os._exit(status)             ─ original, captured at import

    install_exit_hooks() -> ExitHooks
      ├── sys.exit  ─► authority.check_exit ─► original sys.exit
      ├── os._exit  ─► authority.check_exit ─► original os._exit
      └── .restore()

Related modules:
    guard.py    — NoExitGuard, the authority used by the harness

Tags:
    exitguard, authority, process-exit, global-state

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from exitguard.core.logging import get_logger

logger = get_logger(__name__)

# Originals captured at import so routed hooks never call themselves.
_original_sys_exit = sys.exit
_original_os_exit = os._exit


@dataclass(frozen=True)
class Permission:
    """A privileged operation an authority may be asked about."""

    name: str
    actions: str = ""


@runtime_checkable
class Authority(Protocol):
    """Policy object consulted before privileged operations.

    ``check_exit`` and ``check_permission`` return ``None`` to allow the
    operation and raise to deny it.
    """

    def check_exit(self, status: int) -> None:
        ...

    def check_permission(self, permission: Permission, context: Any = None) -> None:
        ...


class SystemAuthority:
    """Default authority: allows everything."""

    def check_exit(self, status: int) -> None:
        return None

    def check_permission(self, permission: Permission, context: Any = None) -> None:
        return None

    def __repr__(self) -> str:
        return "SystemAuthority()"


SYSTEM_AUTHORITY = SystemAuthority()

_lock = threading.RLock()
_current: Authority = SYSTEM_AUTHORITY


def get_current_authority() -> Authority:
    """Return the authority currently in effect for the process."""
    with _lock:
        return _current


def set_current_authority(authority: Authority | None) -> Authority:
    """Make ``authority`` the process-wide authority.

    ``None`` restores :data:`SYSTEM_AUTHORITY`.

    Returns:
        The authority that was replaced.
    """
    global _current
    with _lock:
        previous = _current
        _current = authority if authority is not None else SYSTEM_AUTHORITY
    logger.debug(
        "authority.replaced",
        previous=type(previous).__name__,
        current=type(_current).__name__,
    )
    return previous


def check_permission(permission: Permission, context: Any = None) -> None:
    """Ask the current authority about ``permission``; raises if denied."""
    get_current_authority().check_permission(permission, context)


def exit_process(status: int) -> None:
    """Terminate the process with ``status`` if the current authority allows it.

    The authority may veto by raising, in which case this function raises
    the authority's error and the process keeps running.
    """
    get_current_authority().check_exit(status)
    logger.warning("authority.process_exit", status=status)
    _original_os_exit(status)


# ── Interpreter exit hooks ───────────────────────────────────────────


def exit_status(arg: Any) -> int:
    """Map a ``sys.exit`` argument to the status the interpreter would use."""
    if arg is None:
        return 0
    if isinstance(arg, int):
        return int(arg)
    return 1


def _routed_sys_exit(status: Any = None) -> None:
    get_current_authority().check_exit(exit_status(status))
    _original_sys_exit(status)


def _routed_os_exit(status: int) -> None:
    get_current_authority().check_exit(status)
    _original_os_exit(status)


@dataclass
class ExitHooks:
    """Handle for interpreter exit functions replaced by :func:`install_exit_hooks`.

    ``sys_exit`` / ``os_exit`` hold the replaced callables, or ``None`` when
    this handle did not replace anything (hooks were already routed).
    """

    sys_exit: Callable[..., Any] | None = None
    os_exit: Callable[[int], Any] | None = None

    @property
    def active(self) -> bool:
        return self.sys_exit is not None or self.os_exit is not None

    def restore(self) -> None:
        """Put the replaced callables back. Safe to call more than once."""
        with _lock:
            if self.sys_exit is not None:
                sys.exit = self.sys_exit
                self.sys_exit = None
            if self.os_exit is not None:
                os._exit = self.os_exit
                self.os_exit = None


def exit_hooks_installed() -> bool:
    """True while ``sys.exit`` and ``os._exit`` are routed through the authority."""
    return sys.exit is _routed_sys_exit and os._exit is _routed_os_exit


def install_exit_hooks() -> ExitHooks:
    """Route ``sys.exit`` and ``os._exit`` through the current authority.

    Returns an inactive handle if the hooks are already installed, so only
    the outermost installer restores the originals.
    """
    with _lock:
        hooks = ExitHooks()
        if sys.exit is not _routed_sys_exit:
            hooks.sys_exit = sys.exit
            sys.exit = _routed_sys_exit
        if os._exit is not _routed_os_exit:
            hooks.os_exit = os._exit
            os._exit = _routed_os_exit
    logger.debug("authority.exit_hooks_installed", replaced=hooks.active)
    return hooks


__all__ = [
    "Authority",
    "ExitHooks",
    "Permission",
    "SYSTEM_AUTHORITY",
    "SystemAuthority",
    "check_permission",
    "exit_hooks_installed",
    "exit_process",
    "exit_status",
    "get_current_authority",
    "install_exit_hooks",
    "set_current_authority",
]
