"""Single-process data-processing engine.

This is the subsystem the harness monitors: a context that partitions a
local collection and runs tasks over it on a thread pool. Task failures,
fatal or not, come back to the caller as ``JobFailedError``.

Example:
    >>> from exitguard.engine import EngineConf, LocalContext
    >>> conf = EngineConf().set_app_name("demo").set_master("local")
    >>> with LocalContext(conf) as ctx:
    ...     ctx.parallelize(["One", "Two", "Three"]).count()
    3

Tags:
    exitguard, engine, local-mode

Doc-Types:
    api-reference
"""

from .backend import LocalBackend, TaskResult
from .conf import (
    APP_NAME_KEY,
    DEFAULT_PARALLELISM_KEY,
    EXIT_ON_FATAL_KEY,
    MASTER_KEY,
    EngineConf,
    MasterSpec,
    parse_master,
)
from .context import WORKER_POOL_PERMISSION, LocalContext, get_active_context
from .dataset import Dataset, slice_items
from .faults import (
    OOM,
    UNCAUGHT_EXCEPTION,
    UNCAUGHT_EXCEPTION_TWICE,
    UncaughtExceptionHandler,
    is_fatal_error,
)

__all__ = [
    "APP_NAME_KEY",
    "DEFAULT_PARALLELISM_KEY",
    "EXIT_ON_FATAL_KEY",
    "MASTER_KEY",
    "OOM",
    "UNCAUGHT_EXCEPTION",
    "UNCAUGHT_EXCEPTION_TWICE",
    "WORKER_POOL_PERMISSION",
    "Dataset",
    "EngineConf",
    "LocalBackend",
    "LocalContext",
    "MasterSpec",
    "TaskResult",
    "UncaughtExceptionHandler",
    "get_active_context",
    "is_fatal_error",
    "parse_master",
    "slice_items",
]
