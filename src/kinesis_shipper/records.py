# src/kinesis_shipper/records.py

"""
In-memory value types shared by the validator, aggregator, batcher and
submitter.

All of them are immutable and live only for the duration of one chunk write
attempt: they are rebuilt from the chunk on every retry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class SerializedRecord:
    """One validated payload, ready for batching."""

    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class SkipKind(str, Enum):
    KEY_NOT_FOUND = "KeyNotFound"
    RECORD_TOO_LARGE = "RecordTooLarge"
    INVALID_SHAPE = "InvalidShape"
    INVALID_TIME = "InvalidTime"


def describe_record(record: Any) -> str:
    """Textual form of an offending record for diagnostics."""
    if isinstance(record, (list, tuple)):
        return ", ".join(str(item) for item in reversed(record))
    if isinstance(record, bytes):
        return record.decode("utf-8", errors="replace")
    return str(record)


@dataclass(frozen=True, slots=True)
class SkipReason:
    """Why one record was excluded from delivery."""

    kind: SkipKind
    message: str
    record_text: str
    size: int | None = None

    @classmethod
    def key_not_found(cls, key: str, record: Any) -> "SkipReason":
        return cls(SkipKind.KEY_NOT_FOUND, f"Key '{key}' doesn't exist", describe_record(record))

    @classmethod
    def record_too_large(cls, size: int, record: Any) -> "SkipReason":
        return cls(
            SkipKind.RECORD_TOO_LARGE,
            f"Record size limit exceeded in {size // 1024} KB",
            describe_record(record),
            size=size,
        )

    @classmethod
    def invalid_shape(cls, record: Any) -> "SkipReason":
        return cls(SkipKind.INVALID_SHAPE, "Invalid type of record", describe_record(record))

    @classmethod
    def invalid_time(cls, time: float, record: Any) -> "SkipReason":
        return cls(
            SkipKind.INVALID_TIME, f"Timestamp out of range: {time}", describe_record(record)
        )

    def __str__(self) -> str:
        return f"{self.message}: {self.record_text}"


@dataclass(frozen=True, slots=True)
class Ok:
    record: SerializedRecord


@dataclass(frozen=True, slots=True)
class Skip:
    reason: SkipReason


ValidationResult = Union[Ok, Skip]


@dataclass(frozen=True, slots=True)
class Limits:
    """Count and byte bounds for one packing stage."""

    max_count: int
    max_bytes: int

    def __post_init__(self):
        if self.max_count <= 0 or self.max_bytes <= 0:
            raise ValueError(
                f"Limits must be positive, got count={self.max_count} bytes={self.max_bytes}"
            )


@dataclass(frozen=True, slots=True)
class Batch:
    """An ordered run of items plus their accounted byte size."""

    items: tuple[Any, ...]
    size: int

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass(frozen=True, slots=True)
class AggregateRecord:
    partition_key: str
    data: bytes
    member_count: int = field(default=0)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def request_size(self) -> int:
        """Bytes the service charges for this entry: data plus partition key."""
        return len(self.data) + len(self.partition_key.encode("utf-8"))


@dataclass(frozen=True, slots=True)
class BatchGroup:
    """Stage-2 unit: the aggregate records that go out in one PutRecords call."""

    records: tuple[AggregateRecord, ...]
    size: int

    def __len__(self) -> int:
        return len(self.records)

    @property
    def record_count(self) -> int:
        return sum(record.member_count for record in self.records)
