"""Local context — the engine entry point for single-process execution.

Manifesto:
``LocalContext`` is what a job author touches: build an
:class:`~exitguard.engine.conf.EngineConf`, open a context, parallelize
a collection and run actions on it. Only one context may be running in
a process at a time, and a context must be stopped to release its
worker threads (``with LocalContext(conf) as ctx:`` does that).

ARCHITECTURE
────────────
::

    LocalContext(conf)
      ├── .parallelize(items, num_slices)  ─ Dataset over contiguous slices
      ├── .run_job(dataset, func)          ─ one task per partition on LocalBackend
      └── .stop()                          ─ drain pool, release active slot

Related modules:
    conf.py     — EngineConf, parse_master
    dataset.py  — Dataset transformations and actions
    backend.py  — LocalBackend thread pool

Tags:
    exitguard, engine, context, local-mode

Doc-Types:
    api-reference
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from exitguard.authority import Permission, check_permission
from exitguard.core.errors import ConfigError, ContextStoppedError, EngineError, ErrorContext
from exitguard.core.logging import LogContext, get_logger
from exitguard.engine.backend import LocalBackend
from exitguard.engine.conf import DEFAULT_PARALLELISM_KEY, EXIT_ON_FATAL_KEY, EngineConf, parse_master
from exitguard.engine.dataset import Dataset, slice_items

logger = get_logger(__name__)

# asked of the current authority before worker threads are created
WORKER_POOL_PERMISSION = "createWorkerPool"

_active_lock = threading.Lock()
_active_context: LocalContext | None = None


def get_active_context() -> LocalContext | None:
    """Return the running context, if any."""
    with _active_lock:
        return _active_context


class LocalContext:
    """Runs datasets on a thread pool inside the current process.

    Example:
        >>> conf = EngineConf().set_app_name("demo").set_master("local[2]")
        >>> with LocalContext(conf) as ctx:
        ...     ctx.parallelize(["One", "Two", "Three"]).map(len).collect()
        [3, 3, 5]
    """

    def __init__(self, conf: EngineConf) -> None:
        global _active_context

        if not conf.app_name:
            raise ConfigError("An application name must be set in your configuration")
        if not conf.master:
            raise ConfigError("A master URL must be set in your configuration")

        self.conf = conf.copy()
        self.master = parse_master(conf.master)
        exit_on_fatal = self.conf.get_bool(EXIT_ON_FATAL_KEY, False)
        check_permission(
            Permission(WORKER_POOL_PERMISSION, str(self.master.threads)), context=self.conf.app_name
        )

        with _active_lock:
            if _active_context is not None:
                raise EngineError(
                    "Only one LocalContext may be running in this process",
                    context=ErrorContext(
                        app_name=self.conf.app_name,
                        metadata={"running_app": _active_context.app_name},
                    ),
                )
            _active_context = self

        self._backend = LocalBackend(self.master, exit_on_fatal=exit_on_fatal)
        self._job_ids = itertools.count()
        self._stopped = False

        logger.info(
            "engine.context_started",
            app_name=self.app_name,
            master=self.master.master,
            threads=self.master.threads,
            max_failures=self.master.max_failures,
            exit_on_fatal=exit_on_fatal,
        )

    @property
    def app_name(self) -> str:
        return self.conf.app_name or ""

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def default_parallelism(self) -> int:
        return self.conf.get_int(DEFAULT_PARALLELISM_KEY, self.master.threads)

    def _error_context(self, **kwargs: Any) -> dict[str, Any]:
        return {"app_name": self.app_name, "master": self.master.master, **kwargs}

    def _check_running(self) -> None:
        if self._stopped:
            raise ContextStoppedError(
                "Cannot call methods on a stopped LocalContext",
                context=ErrorContext(**self._error_context()),
            )

    def parallelize(self, items: Iterable[Any], num_slices: int | None = None) -> Dataset:
        """Distribute a local collection into a :class:`Dataset`.

        Args:
            items: Items to distribute; consumed eagerly and order preserved
            num_slices: Partition count (default: ``default_parallelism``)
        """
        self._check_running()
        data = list(items)
        slices = slice_items(data, num_slices or self.default_parallelism)
        return Dataset(self, slices)

    def run_job(self, dataset: Dataset, func: Callable[[Iterator[Any]], Any]) -> list[Any]:
        """Run ``func`` over every partition of ``dataset`` and return per-partition results.

        Raises:
            ContextStoppedError: If the context was stopped.
            JobFailedError: If a task failed more often than the master allows.
        """
        self._check_running()
        if dataset.context is not self:
            raise EngineError(
                "Dataset belongs to a different context",
                context=ErrorContext(**self._error_context()),
            )

        job_id = next(self._job_ids)
        tasks = [
            (lambda partition=partition: func(dataset.compute(partition)))
            for partition in range(dataset.num_partitions)
        ]
        with LogContext(app_name=self.app_name, job_id=job_id):
            logger.info("engine.job_started", tasks=len(tasks))
            try:
                results = self._backend.run_job(job_id, tasks)
            except EngineError as exc:
                exc.with_context(**self._error_context())
                logger.error("engine.job_failed", **exc.to_dict())
                raise
            logger.info("engine.job_finished")
        return results

    def stop(self) -> None:
        """Shut down the worker pool and release the active-context slot. Idempotent."""
        global _active_context

        if self._stopped:
            return
        self._stopped = True
        try:
            self._backend.shutdown(wait=True)
        finally:
            with _active_lock:
                if _active_context is self:
                    _active_context = None
        logger.info("engine.context_stopped", app_name=self.app_name)

    def __enter__(self) -> LocalContext:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"LocalContext(app_name={self.app_name!r}, master={self.master.master!r})"
