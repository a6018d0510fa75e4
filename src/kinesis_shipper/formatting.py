# src/kinesis_shipper/formatting.py

"""
Formatter, injector and compressor strategies.

Each strategy is a small immutable object built once from configuration and
held by the validator for the lifetime of the process, so that formatting one
record never consults configuration again.
"""

import json
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Protocol

from .config import AppConfig


class Formatter(Protocol):
    def format(self, tag: str, time: float, record: Any) -> bytes: ...


class Injector(Protocol):
    def inject(self, tag: str, time: float, record: Any) -> Any: ...


class Compressor(Protocol):
    def __call__(self, data: bytes) -> bytes: ...


# --- Formatters ---


@dataclass(frozen=True, slots=True)
class JsonFormatter:
    """Compact JSON, one document per line."""

    def format(self, tag: str, time: float, record: Any) -> bytes:
        text = json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)
        return (text + "\n").encode("utf-8")


@dataclass(frozen=True, slots=True)
class SingleValueFormatter:
    """Emits only the value stored under *message_key*."""

    message_key: str = "message"

    def format(self, tag: str, time: float, record: Any) -> bytes:
        value = record.get(self.message_key, "") if isinstance(record, Mapping) else record
        if isinstance(value, bytes):
            return value + b"\n"
        return (str(value) + "\n").encode("utf-8")


_FORMATTERS: dict[str, Callable[[AppConfig], Formatter]] = {
    "json": lambda config: JsonFormatter(),
    "single_value": lambda config: SingleValueFormatter(config.format_message_key),
}


def build_formatter(config: AppConfig) -> Formatter:
    try:
        factory = _FORMATTERS[config.format_type]
    except KeyError:
        raise ValueError(f"Unknown formatter type: {config.format_type}") from None
    return factory(config)


# --- Injector ---


@dataclass(frozen=True, slots=True)
class FieldInjector:
    """
    Adds enrichment fields to a mapping record. Records that are not mappings
    are passed through untouched; the input mapping is never mutated.
    """

    time_key: str | None = None
    tag_key: str | None = None
    time_format: str = "%Y-%m-%dT%H:%M:%S.%f%z"

    @property
    def enabled(self) -> bool:
        return bool(self.time_key or self.tag_key)

    def format_time(self, time: float) -> str:
        return datetime.fromtimestamp(time, tz=timezone.utc).strftime(self.time_format)

    def inject(self, tag: str, time: float, record: Any) -> Any:
        if not self.enabled or not isinstance(record, Mapping):
            return record
        enriched = dict(record)
        if self.time_key:
            enriched[self.time_key] = self.format_time(time)
        if self.tag_key:
            enriched[self.tag_key] = tag
        return enriched


def build_injector(config: AppConfig) -> FieldInjector:
    return FieldInjector(
        time_key=config.inject_time_key,
        tag_key=config.inject_tag_key,
        time_format=config.inject_time_format,
    )


# --- Compressors ---


def identity(data: bytes) -> bytes:
    return data


def deflate(data: bytes) -> bytes:
    return zlib.compress(data)


def build_compressor(config: AppConfig) -> Compressor:
    if config.compression in ("zlib", "deflate"):
        return deflate
    return identity
