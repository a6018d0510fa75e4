# In src/kinesis_shipper/schemas.py

import time as _time
from typing import Any, TypedDict

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Static Type Hinting (for mypy and IDEs) ---


class PutRecordsEntry(TypedDict):
    """One entry of the Records list of a Kinesis PutRecords request."""

    Data: bytes
    PartitionKey: str


# --- Runtime Validation (using Pydantic) ---

# 9999-12-31T23:59:59Z, the last second datetime can represent.
MAX_EPOCH_SECONDS = 253_402_300_799


class RawRecord(BaseModel):
    """
    Pydantic model for one log entry as delivered in an SQS message body.

    ``record`` is left untyped: shape checks belong to the record validator,
    which reports a bad record as a skip instead of failing the message.
    """

    model_config = ConfigDict(frozen=True)

    tag: str = Field(..., min_length=1)
    time: float = Field(default_factory=_time.time, allow_inf_nan=False)
    record: Any = None

    @field_validator("time")
    @classmethod
    def validate_time_in_range(cls, value: float) -> float:
        if value < 0:
            raise ValueError("time must be a non-negative epoch timestamp")
        if value > MAX_EPOCH_SECONDS:
            raise ValueError(f"time must not exceed {MAX_EPOCH_SECONDS}")
        return value
