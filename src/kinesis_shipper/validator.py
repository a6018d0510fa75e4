# src/kinesis_shipper/validator.py

"""
Turns raw log entries into size-checked payloads.

A record that cannot be shipped is reported as a ``Skip`` result and logged;
it never raises, so the rest of the chunk is processed normally.
"""

from typing import Any, Iterable, Iterator, Mapping

from .formatting import Compressor, Formatter, Injector, identity
from .records import Ok, SerializedRecord, Skip, SkipReason, ValidationResult
from .reporting import ErrorReporter


def chomp(data: bytes) -> bytes:
    """Strips one trailing line separator."""
    if data.endswith(b"\r\n"):
        return data[:-2]
    if data.endswith((b"\n", b"\r")):
        return data[:-1]
    return data


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class RecordValidator:
    """
    Converts one ``(tag, time, record)`` entry into a ``SerializedRecord`` or a
    ``SkipReason``.

    Two modes are supported:

    * direct-key mode (``data_key`` set): the record must be a mapping with a
      non-null value at ``data_key``; that value's string form is the payload.
    * formatted mode: the record is enriched by the injector, rendered by the
      formatter, optionally chomped, then compressed.

    ``record_offset`` is added to the payload length before comparing it to
    ``max_record_bytes``; it accounts for per-record encoding overhead that the
    downstream service counts but that is not part of the payload.
    """

    def __init__(
        self,
        formatter: Formatter,
        injector: Injector,
        max_record_bytes: int,
        compressor: Compressor = identity,
        data_key: str | None = None,
        chomp_record: bool = False,
        record_offset: int = 0,
        reporter: ErrorReporter | None = None,
    ):
        self._formatter = formatter
        self._injector = injector
        self._compressor = compressor
        self._data_key = data_key
        self._chomp_record = chomp_record
        self.max_record_bytes = max_record_bytes
        self.record_offset = record_offset
        self.reporter = reporter or ErrorReporter()

    def _render(self, tag: str, time: float, record: Any) -> ValidationResult | bytes:
        if self._data_key is None:
            try:
                enriched = self._injector.inject(tag, time, record)
            except (OverflowError, OSError, ValueError):
                return Skip(SkipReason.invalid_time(time, record))
            data = self._formatter.format(tag, time, enriched)
            if self._chomp_record:
                data = chomp(data)
            return self._compressor(data)

        if not isinstance(record, Mapping):
            return Skip(SkipReason.invalid_shape(record))
        value = record.get(self._data_key)
        if value is None:
            return Skip(SkipReason.key_not_found(self._data_key, record))
        return self._compressor(_to_bytes(value))

    def validate(self, tag: str, time: float, record: Any) -> ValidationResult:
        rendered = self._render(tag, time, record)
        if isinstance(rendered, Skip):
            return rendered

        size = len(rendered) + self.record_offset
        if size > self.max_record_bytes:
            return Skip(SkipReason.record_too_large(size, rendered))
        return Ok(SerializedRecord(rendered))

    def format_for_api(self, tag: str, time: float, record: Any) -> bytes | None:
        """
        Validates one entry for buffering. Skipped entries are reported and
        replaced by ``None``, which ``iter_payloads`` later discards. A
        zero-length payload is a valid record and is kept.
        """
        result = self.validate(tag, time, record)
        if isinstance(result, Skip):
            self.reporter.report(result.reason)
            return None
        return result.record.data


def iter_payloads(entries: Iterable[bytes | None]) -> Iterator[SerializedRecord]:
    """Yields buffered payloads in order, dropping the skip markers."""
    for data in entries:
        if data is None:
            continue
        yield SerializedRecord(data)
