# src/kinesis_shipper/aggregator.py

"""
KPL-compatible record aggregation.

Several payloads are packed into one Kinesis record laid out as::

    MAGIC (4 bytes) | AggregatedRecord protobuf message | MD5(message) (16 bytes)

which is the format understood by the Kinesis Client Library and the
``aws-kinesis-agg`` de-aggregators. Every member references the second entry
of the partition key table, so a whole aggregate is routed by one key.

Size accounting is what keeps the final record under the service cap:

* each member costs at most ``RECORD_OFFSET`` bytes on top of its payload;
* the aggregate costs at most ``AGGREGATE_OFFSET`` bytes plus twice the key
  length (see ``aggregate_offset``).
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Iterable, Sequence

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, EncodeError

from .exceptions import InvalidAggregateError
from .records import AggregateRecord, Batch, SerializedRecord

MAGIC = bytes.fromhex("f3899ac2")
DIGEST_SIZE = 16

# Magic + digest + the framing of the two partition key table entries.
AGGREGATE_OFFSET = 25
# Framing of one member: tag/length of the Record plus its index and data fields.
RECORD_OFFSET = 10

# Partition keys are 16 random bytes, hex encoded.
RANDOM_KEY_BYTES = 16


def _build_message_classes():
    _field = descriptor_pb2.FieldDescriptorProto
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="kinesis_shipper/aggregated_record.proto",
        package="kinesis_shipper",
        syntax="proto2",
    )

    tag = file_proto.message_type.add(name="Tag")
    tag.field.add(name="key", number=1, type=_field.TYPE_STRING, label=_field.LABEL_REQUIRED)
    tag.field.add(name="value", number=2, type=_field.TYPE_STRING, label=_field.LABEL_OPTIONAL)

    record = file_proto.message_type.add(name="Record")
    record.field.add(
        name="partition_key_index", number=1, type=_field.TYPE_UINT64, label=_field.LABEL_REQUIRED
    )
    record.field.add(
        name="explicit_hash_key_index", number=2, type=_field.TYPE_UINT64, label=_field.LABEL_OPTIONAL
    )
    record.field.add(name="data", number=3, type=_field.TYPE_BYTES, label=_field.LABEL_REQUIRED)
    record.field.add(
        name="tags", number=4, type=_field.TYPE_MESSAGE, label=_field.LABEL_REPEATED,
        type_name=".kinesis_shipper.Tag",
    )

    aggregated = file_proto.message_type.add(name="AggregatedRecord")
    aggregated.field.add(
        name="partition_key_table", number=1, type=_field.TYPE_STRING, label=_field.LABEL_REPEATED
    )
    aggregated.field.add(
        name="explicit_hash_key_table", number=2, type=_field.TYPE_STRING, label=_field.LABEL_REPEATED
    )
    aggregated.field.add(
        name="records", number=3, type=_field.TYPE_MESSAGE, label=_field.LABEL_REPEATED,
        type_name=".kinesis_shipper.Record",
    )

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return (
        message_factory.GetMessageClass(pool.FindMessageTypeByName("kinesis_shipper.AggregatedRecord")),
        message_factory.GetMessageClass(pool.FindMessageTypeByName("kinesis_shipper.Record")),
    )


AggregatedRecordMessage, RecordMessage = _build_message_classes()


def aggregate_offset(partition_key_length: int) -> int:
    """Upper bound of the per-aggregate overhead for a key of the given length."""
    return AGGREGATE_OFFSET + partition_key_length * 2


def aggregate(payloads: Iterable[bytes], partition_key: str) -> bytes:
    """Encodes *payloads* as one aggregated record routed by *partition_key*."""
    message = AggregatedRecordMessage(
        partition_key_table=["a", partition_key],
        records=[RecordMessage(partition_key_index=1, data=data) for data in payloads],
    )
    try:
        body = message.SerializeToString(deterministic=True)
    except EncodeError as e:
        raise InvalidAggregateError(f"cannot encode aggregate: {e}") from e
    return MAGIC + body + hashlib.md5(body).digest()


def is_aggregated(data: bytes) -> bool:
    return len(data) > len(MAGIC) + DIGEST_SIZE and data.startswith(MAGIC)


def deaggregate(data: bytes) -> tuple[str, list[bytes]]:
    """
    Decodes an aggregated record back into its partition key and member
    payloads, verifying the magic prefix and the digest.
    """
    if not is_aggregated(data):
        raise InvalidAggregateError("missing magic prefix")

    body = data[len(MAGIC):-DIGEST_SIZE]
    digest = data[-DIGEST_SIZE:]
    if hashlib.md5(body).digest() != digest:
        raise InvalidAggregateError("digest mismatch")

    message = AggregatedRecordMessage()
    try:
        message.ParseFromString(body)
    except DecodeError as e:
        raise InvalidAggregateError(f"cannot decode message: {e}") from e

    table = list(message.partition_key_table)
    payloads = []
    partition_key = ""
    for record in message.records:
        if record.partition_key_index >= len(table):
            raise InvalidAggregateError("partition key index out of range")
        partition_key = table[record.partition_key_index]
        payloads.append(record.data)
    return partition_key, payloads


@dataclass(frozen=True, slots=True)
class PartitionKeyGenerator:
    """Yields the fixed key when configured, a fresh random key otherwise."""

    fixed_key: str | None = None

    def __call__(self) -> str:
        if self.fixed_key is not None:
            return self.fixed_key
        return secrets.token_hex(RANDOM_KEY_BYTES)

    @property
    def key_length(self) -> int:
        if self.fixed_key is not None:
            return len(self.fixed_key.encode("utf-8"))
        return RANDOM_KEY_BYTES * 2


class Aggregator:
    """Turns a stage-1 batch into one ``AggregateRecord``."""

    def __init__(self, key_generator: PartitionKeyGenerator):
        self._key_generator = key_generator

    @property
    def offset(self) -> int:
        return aggregate_offset(self._key_generator.key_length)

    def build(self, batch: Batch | Sequence[SerializedRecord]) -> AggregateRecord:
        members = list(batch)
        key = self._key_generator()
        return AggregateRecord(
            partition_key=key,
            data=aggregate((member.data for member in members), key),
            member_count=len(members),
        )
