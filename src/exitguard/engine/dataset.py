"""Partitioned datasets with lazy per-partition pipelines.

A :class:`Dataset` holds the source slices created by
``LocalContext.parallelize`` plus a composed iterator transform. Nothing
runs until an action (``foreach``, ``collect``, ``count``, ``glom``)
submits a job to the owning context.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from exitguard.engine.context import LocalContext

PartitionTransform = Callable[[Iterator[Any]], Iterator[Any]]


def slice_items(items: Sequence[Any], num_slices: int) -> list[list[Any]]:
    """Split ``items`` into ``num_slices`` contiguous slices.

    Slice ``i`` covers positions ``[(i * n) // k, ((i + 1) * n) // k)``, so
    sizes differ by at most one and empty slices are allowed.

    >>> slice_items(["One", "Two", "Three"], 2)
    [['One'], ['Two', 'Three']]
    """
    if num_slices < 1:
        raise ValueError(f"Positive number of partitions required, got {num_slices}")
    length = len(items)
    return [
        list(items[(i * length) // num_slices:((i + 1) * length) // num_slices])
        for i in range(num_slices)
    ]


def _identity(iterator: Iterator[Any]) -> Iterator[Any]:
    return iterator


class Dataset:
    """An immutable, partitioned collection bound to a :class:`LocalContext`."""

    def __init__(
        self,
        context: LocalContext,
        partitions: list[list[Any]],
        transform: PartitionTransform = _identity,
    ) -> None:
        self.context = context
        self._partitions = partitions
        self._transform = transform

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    def compute(self, partition: int) -> Iterator[Any]:
        """Return the iterator for one partition with all transforms applied."""
        return self._transform(iter(self._partitions[partition]))

    def _then(self, step: PartitionTransform) -> Dataset:
        previous = self._transform

        def composed(iterator: Iterator[Any]) -> Iterator[Any]:
            return step(previous(iterator))

        return Dataset(self.context, self._partitions, composed)

    # ── Transformations ──────────────────────────────────────────────

    def map(self, func: Callable[[Any], Any]) -> Dataset:
        return self._then(lambda iterator: (func(item) for item in iterator))

    def filter(self, predicate: Callable[[Any], bool]) -> Dataset:
        return self._then(lambda iterator: (item for item in iterator if predicate(item)))

    # ── Actions ──────────────────────────────────────────────────────

    def foreach(self, func: Callable[[Any], Any]) -> None:
        """Apply ``func`` to every item, one task per partition.

        Raises:
            JobFailedError: If a task fails more than the master allows.
        """

        def consume(iterator: Iterable[Any]) -> None:
            for item in iterator:
                func(item)

        self.context.run_job(self, consume)

    def collect(self) -> list[Any]:
        return [item for part in self.context.run_job(self, list) for item in part]

    def count(self) -> int:
        return sum(self.context.run_job(self, lambda iterator: sum(1 for _ in iterator)))

    def glom(self) -> list[list[Any]]:
        """Return the items of each partition as a separate list."""
        return self.context.run_job(self, list)

    def __repr__(self) -> str:
        return f"Dataset(partitions={self.num_partitions})"
