# src/kinesis_shipper/core.py

"""
Core business logic for shipping buffered log records to Kinesis.

An output has two entry points that mirror the lifecycle of a buffered
shipper:

* ``format(tag, time, record)`` runs once per record when it is buffered. It
  validates the record and returns the payload to store in the chunk, or
  ``None`` when the record is skipped.
* ``write(chunk)`` runs once per delivery attempt. It reads the chunk front
  to back, packs the stored payloads into PutRecords calls and submits them.

Two delivery modes exist. ``StreamsOutput`` sends one Kinesis record per
payload. ``AggregatedStreamsOutput`` first packs payloads into KPL aggregate
records (stage 1) and then packs aggregates into calls (stage 2), using the
same greedy routine with different limits.

Nothing here retries. A failed call raises, the whole attempt is abandoned,
and the next attempt rebuilds every batch from the start of the chunk.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, ContextManager, Iterable, Iterator, Protocol, Sequence

from .aggregator import RECORD_OFFSET, Aggregator, PartitionKeyGenerator
from .batcher import group_batches, split_to_batches
from .clients import KinesisClient
from .config import AppConfig
from .formatting import build_compressor, build_formatter, build_injector
from .records import Batch, BatchGroup, Limits, SerializedRecord
from .reporting import ErrorReporter
from .schemas import PutRecordsEntry
from .validator import RecordValidator, iter_payloads

logger = logging.getLogger(__name__)

# Kinesis Data Streams service limits.
PUT_RECORDS_MAX_COUNT = 500
PUT_RECORDS_MAX_BYTES = 5 * 1024 * 1024
MAX_RECORD_BYTES = 1024 * 1024
AGGREGATE_MAX_COUNT = 100_000


# --- Chunks ---


class Chunk(Protocol):
    """A durable unit of buffered payloads, read once per delivery attempt."""

    unique_id: str

    def open(self) -> ContextManager[Iterator[bytes | None]]: ...


class MemoryChunk:
    """A chunk held in memory, e.g. the records of one SQS batch."""

    def __init__(self, unique_id: str, entries: Iterable[bytes | None] = ()):
        self.unique_id = unique_id
        self._entries: list[bytes | None] = list(entries)

    def append(self, data: bytes | None) -> None:
        self._entries.append(data)

    def __len__(self) -> int:
        return len(self._entries)

    @contextmanager
    def open(self) -> Iterator[Iterator[bytes | None]]:
        yield iter(self._entries)


@dataclass
class WriteSummary:
    """Totals of one chunk write, for logging and metrics."""

    calls: int = 0
    records: int = 0
    bytes: int = 0


# --- Submitter ---


class Submitter:
    """
    Shapes batches into PutRecords requests and hands them to the client.
    Client errors propagate unchanged.
    """

    def __init__(self, client: KinesisClient, stream_name: str):
        self._client = client
        self._stream_name = stream_name

    def _send(
        self, chunk_id: str, entries: Sequence[PutRecordsEntry], summary: WriteSummary
    ) -> None:
        self._client.put_records(self._stream_name, entries)
        summary.calls += 1
        logger.debug("Finish writing chunk", extra={"chunk_id": chunk_id})

    def send_batch(
        self,
        chunk_id: str,
        batch: Batch,
        key_generator: PartitionKeyGenerator,
        summary: WriteSummary,
    ) -> None:
        logger.debug(
            f"Write chunk {chunk_id} / {len(batch):3d} records / {batch.size // 1024:4d} KB",
            extra={"chunk_id": chunk_id, "records": len(batch), "bytes": batch.size},
        )
        entries: list[PutRecordsEntry] = [
            {"Data": record.data, "PartitionKey": key_generator()} for record in batch
        ]
        self._send(chunk_id, entries, summary)
        summary.records += len(batch)
        summary.bytes += batch.size

    def send_group(self, chunk_id: str, group: BatchGroup, summary: WriteSummary) -> None:
        logger.debug(
            f"Write chunk {chunk_id} / {len(group):3d} batches / "
            f"{group.record_count:3d} records / {group.size // 1024:4d} KB",
            extra={
                "chunk_id": chunk_id,
                "batches": len(group),
                "records": group.record_count,
                "bytes": group.size,
            },
        )
        entries: list[PutRecordsEntry] = [
            {"Data": aggregate.data, "PartitionKey": aggregate.partition_key}
            for aggregate in group.records
        ]
        self._send(chunk_id, entries, summary)
        summary.records += group.record_count
        summary.bytes += group.size


# --- Outputs ---


class KinesisOutput(ABC):
    """Shared format/write lifecycle; subclasses decide how payloads are packed."""

    def __init__(self, validator: RecordValidator, submitter: Submitter):
        self.validator = validator
        self.submitter = submitter

    def format(self, tag: str, time: float, record: Any) -> bytes | None:
        return self.validator.format_for_api(tag, time, record)

    def write(self, chunk: Chunk) -> WriteSummary:
        summary = WriteSummary()
        with chunk.open() as entries:
            self._write_payloads(chunk.unique_id, iter_payloads(entries), summary)
        logger.info(
            "Finished writing chunk",
            extra={
                "chunk_id": chunk.unique_id,
                "calls": summary.calls,
                "records": summary.records,
                "bytes": summary.bytes,
            },
        )
        return summary

    @abstractmethod
    def _write_payloads(
        self, chunk_id: str, payloads: Iterator[SerializedRecord], summary: WriteSummary
    ) -> None:
        """Packs the chunk's payloads into calls and submits them."""


class StreamsOutput(KinesisOutput):
    """One Kinesis record per payload, each with its own partition key."""

    def __init__(
        self,
        validator: RecordValidator,
        submitter: Submitter,
        key_generator: PartitionKeyGenerator,
        limits: Limits,
    ):
        super().__init__(validator, submitter)
        self.key_generator = key_generator
        self.limits = limits

    def _write_payloads(self, chunk_id, payloads, summary):
        key_length = self.key_generator.key_length
        batches = split_to_batches(
            payloads, self.limits, lambda record: record.size + key_length
        )
        for batch in batches:
            self.submitter.send_batch(chunk_id, batch, self.key_generator, summary)


class AggregatedStreamsOutput(KinesisOutput):
    """
    Packs payloads into aggregate records (stage 1), then aggregates into
    PutRecords calls (stage 2).
    """

    def __init__(
        self,
        validator: RecordValidator,
        submitter: Submitter,
        aggregator: Aggregator,
        aggregate_limits: Limits,
        call_limits: Limits,
    ):
        super().__init__(validator, submitter)
        self.aggregator = aggregator
        self.aggregate_limits = aggregate_limits
        self.call_limits = call_limits

    def _write_payloads(self, chunk_id, payloads, summary):
        batches = split_to_batches(
            payloads, self.aggregate_limits, lambda record: record.size + RECORD_OFFSET
        )
        aggregates = (self.aggregator.build(batch) for batch in batches)
        for group in group_batches(aggregates, self.call_limits):
            self.submitter.send_group(chunk_id, group, summary)


# --- Factory ---


def call_limits(config: AppConfig) -> Limits:
    """Per-call limits: the configured values, capped by the service limits."""
    return Limits(
        max_count=min(config.max_records_per_call, PUT_RECORDS_MAX_COUNT),
        max_bytes=min(config.max_request_size_bytes, PUT_RECORDS_MAX_BYTES),
    )


def build_output(config: AppConfig, client: KinesisClient) -> KinesisOutput:
    """Wires formatting strategies, limits and the submitter for the configured mode."""
    key_generator = PartitionKeyGenerator(config.fixed_partition_key)
    submitter = Submitter(client, config.stream_name)
    reporter = ErrorReporter(config.log_truncate_max_size)
    strategies = {
        "formatter": build_formatter(config),
        "injector": build_injector(config),
        "compressor": build_compressor(config),
        "data_key": config.data_key,
        "chomp_record": config.chomp_record,
        "reporter": reporter,
    }

    if not config.aggregation_enabled:
        validator = RecordValidator(
            max_record_bytes=MAX_RECORD_BYTES,
            record_offset=key_generator.key_length,
            **strategies,
        )
        return StreamsOutput(validator, submitter, key_generator, call_limits(config))

    aggregator = Aggregator(key_generator)
    offset = aggregator.offset
    validator = RecordValidator(
        max_record_bytes=MAX_RECORD_BYTES - offset,
        record_offset=RECORD_OFFSET,
        **strategies,
    )
    logger.debug(
        "Aggregation enabled",
        extra={"aggregate_offset": offset, "max_record_bytes": validator.max_record_bytes},
    )
    return AggregatedStreamsOutput(
        validator,
        submitter,
        aggregator,
        aggregate_limits=Limits(AGGREGATE_MAX_COUNT, MAX_RECORD_BYTES - offset),
        call_limits=call_limits(config),
    )
