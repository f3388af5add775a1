"""Local Backend — ThreadPool-based task execution for a local context.

Manifesto:
In local mode the driver and the executor share one process, so a task
error must come back to the caller as a failed job and never take the
process down. ``LocalBackend`` runs each partition as a task on a
``ThreadPoolExecutor``, retries failed tasks up to the master's
``max_failures`` and aborts the job with ``JobFailedError`` chained to
the last task error.

ARCHITECTURE
────────────
::

    LocalBackend(MasterSpec(threads=N, max_failures=F))
      ├── .run_job(job_id, tasks)  ─ one future per partition, retry, abort
      ├── ._run_task(...)          ─ caller's log context + partition/attempt,
      │                              catches everything, classifies fatal errors
      └── .shutdown()              ─ drain pool

Related modules:
    context.py  — LocalContext builds tasks from datasets
    faults.py   — is_fatal_error, UncaughtExceptionHandler

Tags:
    exitguard, engine, executor, thread-pool, local-mode

Doc-Types:
    api-reference
"""

from __future__ import annotations

import contextvars
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any

from exitguard.core.errors import ErrorContext, JobFailedError
from exitguard.core.logging import LogContext, get_logger
from exitguard.engine.conf import MasterSpec
from exitguard.engine.faults import UncaughtExceptionHandler, is_fatal_error

logger = get_logger(__name__)

THREAD_NAME_PREFIX = "executor-task-launch-worker"


@dataclass
class TaskResult:
    """Outcome of one task attempt."""

    partition: int
    attempt: int
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LocalBackend:
    """Runs job tasks on a thread pool inside the calling process."""

    def __init__(
        self,
        master: MasterSpec,
        *,
        exit_on_fatal: bool = False,
        handler: UncaughtExceptionHandler | None = None,
    ) -> None:
        """Initialize with worker pool.

        Args:
            master: Parsed master string (thread count, task attempts)
            exit_on_fatal: Hand fatal task errors to ``handler``
            handler: Uncaught exception handler (default: process exit through the authority)
        """
        self.master = master
        self.exit_on_fatal = exit_on_fatal
        self.handler = handler or UncaughtExceptionHandler()
        self.pool = ThreadPoolExecutor(
            max_workers=master.threads, thread_name_prefix=THREAD_NAME_PREFIX
        )

    def _run_task(self, job_id: int, partition: int, task: Callable[[], Any], attempt: int) -> TaskResult:
        with LogContext(partition=partition, attempt=attempt):
            return self._attempt(job_id, partition, task, attempt)

    def _attempt(self, job_id: int, partition: int, task: Callable[[], Any], attempt: int) -> TaskResult:
        try:
            value = task()
        except BaseException as exc:
            thread_name = threading.current_thread().name
            if is_fatal_error(exc):
                logger.error(
                    "engine.task_fatal_error",
                    job_id=job_id,
                    partition=partition,
                    attempt=attempt,
                    thread=thread_name,
                    error_type=type(exc).__name__,
                )
                if self.exit_on_fatal:
                    self.handler.handle(exc, thread_name)
            return TaskResult(partition=partition, attempt=attempt, error=exc)
        return TaskResult(partition=partition, attempt=attempt, value=value)

    def _submit(self, job_id: int, partition: int, task: Callable[[], Any], attempt: int) -> Future:
        # pool threads do not inherit contextvars; run each task in a copy of the caller's
        return self.pool.submit(
            contextvars.copy_context().run, self._run_task, job_id, partition, task, attempt
        )

    def run_job(self, job_id: int, tasks: Sequence[Callable[[], Any]]) -> list[Any]:
        """Run one task per partition and return their results in partition order.

        Raises:
            JobFailedError: When a task has failed ``max_failures`` times.
        """
        results: list[Any] = [None] * len(tasks)
        pending: dict[Future, int] = {
            self._submit(job_id, partition, task, 1): partition
            for partition, task in enumerate(tasks)
        }

        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                partition = pending.pop(future)
                outcome: TaskResult = future.result()
                if outcome.ok:
                    results[partition] = outcome.value
                    continue

                error = outcome.error
                logger.warning(
                    "engine.task_failed",
                    job_id=job_id,
                    partition=partition,
                    attempt=outcome.attempt,
                    error_type=type(error).__name__,
                    error=str(error),
                )
                if outcome.attempt >= self.master.max_failures:
                    for other in pending:
                        other.cancel()
                    raise JobFailedError(
                        f"Job aborted due to stage failure: Task {partition} in stage {job_id}.0 "
                        f"failed {outcome.attempt} times, most recent failure: "
                        f"{type(error).__name__}: {error}",
                        context=ErrorContext(
                            job_id=job_id,
                            task_id=partition,
                            partition=partition,
                            attempt=outcome.attempt,
                        ),
                        cause=error,
                    )
                retry = self._submit(job_id, partition, tasks[partition], outcome.attempt + 1)
                pending[retry] = partition

        return results

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown thread pool.

        Args:
            wait: If True, wait for running tasks to complete
        """
        self.pool.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
