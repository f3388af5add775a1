"""Fatal error classification and the engine's uncaught exception handler.

Most task failures are recoverable: the task is retried or the job fails
and the caller gets a :class:`~exitguard.core.errors.JobFailedError`.
Some errors are not. Anything outside the ``Exception`` hierarchy, plus
``MemoryError`` and ``RecursionError``, means the worker itself may be
in a bad state, and an executor running in its own process would shut
that process down through :class:`UncaughtExceptionHandler`.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from exitguard.authority import exit_process
from exitguard.core.logging import get_logger

logger = get_logger(__name__)

# Process exit codes used by the uncaught exception handler.
UNCAUGHT_EXCEPTION = 50
UNCAUGHT_EXCEPTION_TWICE = 51
OOM = 52

# Exception subclasses that are still treated as fatal.
FATAL_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (MemoryError, RecursionError)


def is_fatal_error(exc: BaseException) -> bool:
    """Return True if ``exc`` must not be handled as an ordinary task failure.

    >>> is_fatal_error(ValueError("bad row"))
    False
    >>> is_fatal_error(KeyboardInterrupt())
    True
    >>> is_fatal_error(RecursionError())
    True
    """
    if not isinstance(exc, Exception):
        return True
    return isinstance(exc, FATAL_EXCEPTION_TYPES)


class UncaughtExceptionHandler:
    """Terminates the process after a fatal error.

    Tries the primary exit code first (``OOM`` for ``MemoryError``,
    ``UNCAUGHT_EXCEPTION`` otherwise). If the exit is refused by raising,
    it tries once more with ``UNCAUGHT_EXCEPTION_TWICE``. If that is also
    refused the error is logged and the handler returns.
    """

    def __init__(self, exit_func: Callable[[int], None] = exit_process) -> None:
        self._exit = exit_func

    def handle(self, exc: BaseException, thread_name: str | None = None) -> None:
        thread_name = thread_name or threading.current_thread().name
        logger.error(
            "engine.uncaught_exception",
            thread=thread_name,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        status = OOM if isinstance(exc, MemoryError) else UNCAUGHT_EXCEPTION
        try:
            self._exit(status)
        except Exception:
            logger.error("engine.exit_refused", status=status, exc_info=True)
            try:
                self._exit(UNCAUGHT_EXCEPTION_TWICE)
            except Exception:
                logger.error("engine.exit_refused", status=UNCAUGHT_EXCEPTION_TWICE, exc_info=True)
