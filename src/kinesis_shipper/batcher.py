# src/kinesis_shipper/batcher.py

"""
Greedy packing of sized items into bounded batches.

The same routine serves both stages of aggregated delivery: stage 1 decides
which payloads share one aggregate record, stage 2 decides which aggregates
share one PutRecords call. Boundaries depend only on item order, item sizes
and the limits, so repeated runs over the same input split identically.
"""

from typing import Any, Callable, Iterable, Iterator

from .records import AggregateRecord, Batch, BatchGroup, Limits


def _default_size(item: Any) -> int:
    return item.size


def pack_into(
    items: Iterable[Any],
    limits: Limits,
    size_of: Callable[[Any], int] = _default_size,
) -> Iterator[tuple[list[Any], int]]:
    """
    Consumes *items* once, in order, yielding ``(items, size)`` runs.

    A run is closed before an item that would push it past either limit, but
    only when the run already holds something: an item larger than the byte
    limit on its own still goes out as a run of one.
    """
    run: list[Any] = []
    run_size = 0
    for item in items:
        item_size = size_of(item)
        would_overflow = (
            len(run) + 1 > limits.max_count or run_size + item_size > limits.max_bytes
        )
        if would_overflow and run:
            yield run, run_size
            run = []
            run_size = 0
        run.append(item)
        run_size += item_size
    if run:
        yield run, run_size


def split_to_batches(
    items: Iterable[Any],
    limits: Limits,
    size_of: Callable[[Any], int] = _default_size,
) -> Iterator[Batch]:
    for run, size in pack_into(items, limits, size_of):
        yield Batch(items=tuple(run), size=size)


def group_batches(
    aggregates: Iterable[AggregateRecord], limits: Limits
) -> Iterator[BatchGroup]:
    """Stage 2: packs aggregate records (one per stage-1 batch) into calls."""
    for run, size in pack_into(aggregates, limits, lambda record: record.request_size):
        yield BatchGroup(records=tuple(run), size=size)
