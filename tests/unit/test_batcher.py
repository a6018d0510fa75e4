# tests/unit/test_batcher.py

"""
Unit tests for the greedy packing routine in src/kinesis_shipper/batcher.py.
"""

import random

import pytest

from kinesis_shipper.batcher import group_batches, pack_into, split_to_batches
from kinesis_shipper.records import AggregateRecord, Limits, SerializedRecord


def _records(*sizes: int) -> list[SerializedRecord]:
    return [SerializedRecord(bytes([i % 256]) * size) for i, size in enumerate(sizes)]


def _sizes(batches) -> list[list[int]]:
    return [[record.size for record in batch] for batch in batches]


# --- Scenarios ---


def test_splits_on_count_limit():
    """count=2, size=100 and four 30-byte records give two batches of 60 bytes."""
    batches = list(split_to_batches(_records(30, 30, 30, 30), Limits(2, 100)))

    assert _sizes(batches) == [[30, 30], [30, 30]]
    assert [batch.size for batch in batches] == [60, 60]


def test_oversize_single_item_forms_its_own_batch():
    """An item larger than the byte limit is emitted alone, not dropped."""
    batches = list(split_to_batches(_records(80), Limits(10, 50)))

    assert _sizes(batches) == [[80]]
    assert batches[0].size == 80


def test_oversize_item_between_others_is_isolated():
    batches = list(split_to_batches(_records(20, 80, 20), Limits(10, 50)))

    assert _sizes(batches) == [[20], [80], [20]]


def test_splits_on_byte_limit():
    batches = list(split_to_batches(_records(40, 40, 20, 50), Limits(10, 100)))

    assert _sizes(batches) == [[40, 40, 20], [50]]


def test_exact_fit_is_not_split():
    batches = list(split_to_batches(_records(50, 50), Limits(2, 100)))

    assert _sizes(batches) == [[50, 50]]


def test_empty_input_yields_nothing():
    assert list(split_to_batches([], Limits(2, 100))) == []


def test_custom_size_function_is_used_for_accounting():
    """Per-item overhead counts toward the byte limit."""
    batches = list(
        split_to_batches(_records(40, 40, 40), Limits(10, 100), lambda r: r.size + 10)
    )

    assert _sizes(batches) == [[40, 40], [40]]
    assert batches[0].size == 100


def test_input_is_consumed_lazily():
    """Batches are emitted as soon as they close, before the input ends."""
    consumed = []

    def source():
        for record in _records(30, 30, 30):
            consumed.append(record)
            yield record

    batches = split_to_batches(source(), Limits(2, 100))
    first = next(batches)

    assert len(first) == 2
    assert len(consumed) == 3  # the third item closed the first batch


def test_pack_into_accepts_any_sized_items():
    runs = list(pack_into([5, 5, 5], Limits(10, 10), size_of=lambda n: n))

    assert runs == [([5, 5], 10), ([5], 5)]


# --- Properties over random inputs ---


@pytest.mark.parametrize("seed", range(20))
def test_packing_properties(seed):
    rng = random.Random(seed)
    limits = Limits(max_count=rng.randint(1, 8), max_bytes=rng.randint(50, 300))
    records = _records(*(rng.randint(1, 400) for _ in range(rng.randint(0, 60))))

    batches = list(split_to_batches(records, limits))

    for batch in batches:
        # count invariant
        assert 1 <= len(batch) <= limits.max_count
        # size invariant, with the singleton exemption
        assert batch.size == sum(record.size for record in batch)
        if batch.size > limits.max_bytes:
            assert len(batch) == 1

    # lossless, order-preserving flatten
    flattened = [record for batch in batches for record in batch]
    assert len(flattened) == len(records)
    assert all(a is b for a, b in zip(flattened, records))

    # deterministic boundaries
    again = list(split_to_batches(records, limits))
    assert [len(batch) for batch in again] == [len(batch) for batch in batches]


# --- Stage 2 ---


def _aggregate(size: int, key: str = "k", members: int = 1) -> AggregateRecord:
    return AggregateRecord(partition_key=key, data=b"x" * (size - len(key)), member_count=members)


def test_group_batches_respects_call_limits():
    aggregates = [_aggregate(40, members=3) for _ in range(5)]

    groups = list(group_batches(aggregates, Limits(2, 1000)))

    assert [len(group) for group in groups] == [2, 2, 1]
    assert [group.record_count for group in groups] == [6, 6, 3]
    assert [group.size for group in groups] == [80, 80, 40]


def test_group_batches_counts_partition_key_bytes():
    aggregates = [
        AggregateRecord(partition_key="abcd", data=b"x" * 46, member_count=1),
        AggregateRecord(partition_key="abcd", data=b"x" * 46, member_count=1),
    ]

    groups = list(group_batches(aggregates, Limits(10, 99)))

    assert [len(group) for group in groups] == [1, 1]
    assert groups[0].size == 50


def test_group_batches_sends_oversize_aggregate_alone():
    aggregates = [_aggregate(10), _aggregate(500), _aggregate(10)]

    groups = list(group_batches(aggregates, Limits(10, 100)))

    assert [len(group) for group in groups] == [1, 1, 1]
    assert groups[1].size == 500
