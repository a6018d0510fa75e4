# src/kinesis_shipper/exceptions.py

"""
Shared custom exceptions for the Kinesis log shipper.

Per-record problems (missing key, oversize record, wrong shape) are NOT
exceptions: the validator returns them as ``Skip`` results so that one bad
record never aborts a chunk. The classes below cover the failures that must
escalate to the caller: transport/service errors and configuration errors.

Exception Hierarchy:
- ShipperError (base)
  - RetryableError (the whole chunk can be re-delivered)
    - StreamThrottlingError
    - StreamTimeoutError
    - PartialPutRecordsError
  - NonRetryableError (re-delivery will not help)
    - StreamNotFoundError
    - StreamAccessDeniedError
    - TransportError
    - InvalidAggregateError
    - ConfigurationError
"""

from typing import Any, Dict, Optional


class ShipperError(Exception):
    """Base exception for all Kinesis log shipper errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "correlation_id": self.correlation_id,
            "retryable": isinstance(self, RetryableError),
        }


class RetryableError(ShipperError):
    """Base class for errors that can be retried."""

    pass


class NonRetryableError(ShipperError):
    """Base class for errors that should not be retried."""

    pass


# === Stream (transport) errors ===


class StreamError(ShipperError):
    """Base class for Kinesis stream errors."""

    pass


class StreamNotFoundError(StreamError, NonRetryableError):
    """Raised when the destination stream does not exist."""

    def __init__(self, stream_name: str, **kwargs):
        message = f"Kinesis stream not found: {stream_name}"
        context = {"stream_name": stream_name}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        super().__init__(
            message, error_code="STREAM_NOT_FOUND", context=context, **kwargs
        )


class StreamAccessDeniedError(StreamError, NonRetryableError):
    """Raised when the caller may not write to the destination stream."""

    def __init__(self, stream_name: str, **kwargs):
        message = f"Access denied to Kinesis stream: {stream_name}"
        context = {"stream_name": stream_name}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        super().__init__(
            message, error_code="STREAM_ACCESS_DENIED", context=context, **kwargs
        )


class StreamThrottlingError(StreamError, RetryableError):
    """Raised when the stream rejects a call for exceeding its throughput."""

    def __init__(self, operation: str, **kwargs):
        message = f"Kinesis operation throttled: {operation}"
        context = {"operation": operation}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        super().__init__(
            message, error_code="STREAM_THROTTLING", context=context, **kwargs
        )


class StreamTimeoutError(StreamError, RetryableError):
    """Raised when a Kinesis call times out or cannot reach the endpoint."""

    def __init__(self, operation: str, timeout_seconds: float | None = None, **kwargs):
        if timeout_seconds is None:
            message = f"Kinesis operation timed out: {operation}"
        else:
            message = f"Kinesis operation timed out after {timeout_seconds}s: {operation}"
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        context.update({"operation": operation, "timeout_seconds": timeout_seconds})
        super().__init__(message, error_code="STREAM_TIMEOUT", context=context, **kwargs)


class PartialPutRecordsError(StreamError, RetryableError):
    """Raised when PutRecords succeeds as a call but rejects some entries."""

    def __init__(
        self,
        failed_count: int,
        total_count: int,
        error_codes: Optional[Dict[str, int]] = None,
        **kwargs,
    ):
        message = f"PutRecords rejected {failed_count} of {total_count} records"
        context = {
            "failed_count": failed_count,
            "total_count": total_count,
            "error_codes": dict(error_codes) if error_codes else {},
        }
        super().__init__(
            message, error_code="PUT_RECORDS_PARTIAL_FAILURE", context=context, **kwargs
        )


class TransportError(StreamError, NonRetryableError):
    """Raised for any other client error returned by the Kinesis API."""

    def __init__(self, message: str, **kwargs):
        if "error_code" not in kwargs:
            kwargs["error_code"] = "STREAM_CLIENT_ERROR"
        super().__init__(message, **kwargs)


# === Encoding errors ===


class InvalidAggregateError(NonRetryableError):
    """Raised when bytes are not a well-formed aggregated record."""

    def __init__(self, reason: str, **kwargs):
        message = f"Invalid aggregated record: {reason}"
        context = {"reason": reason}
        super().__init__(
            message, error_code="INVALID_AGGREGATE", context=context, **kwargs
        )


# === Configuration Errors ===


class ConfigurationError(NonRetryableError):
    """Raised when there's an error in the application configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# === Utility Functions ===


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable."""
    return isinstance(error, RetryableError)


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, ShipperError):
        return error.to_dict()
    else:
        return {
            "error_type": error.__class__.__name__,
            "message": str(error),
            "retryable": False,
        }
