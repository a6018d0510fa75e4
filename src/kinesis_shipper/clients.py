# src/kinesis_shipper/clients.py

"""
Client wrapper for the Kinesis Data Streams API.

This class is the transport collaborator of the shipper: it sends one
PutRecords call per invocation and translates boto3 failures into the typed
exceptions of ``exceptions.py``. It never retries; whether and how a chunk is
re-delivered is decided by the caller.
"""

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, Sequence

from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from .exceptions import (
    PartialPutRecordsError,
    StreamAccessDeniedError,
    StreamNotFoundError,
    StreamThrottlingError,
    StreamTimeoutError,
    TransportError,
)
from .schemas import PutRecordsEntry

if TYPE_CHECKING:
    from mypy_boto3_kinesis.client import KinesisClient as KinesisClientType

logger = logging.getLogger(__name__)

_THROTTLING_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "LimitExceededException",
    "KMSThrottlingException",
}
_UNAVAILABLE_CODES = {
    "RequestTimeout",
    "RequestTimeoutException",
    "InternalFailure",
    "ServiceUnavailable",
}
_ACCESS_DENIED_CODES = {
    "AccessDeniedException",
    "KMSAccessDeniedException",
}


class KinesisClient:
    """
    A wrapper for Kinesis PutRecords, focused on surfacing typed errors.
    """

    def __init__(self, kinesis_client: "KinesisClientType"):
        """
        Initializes the KinesisClient.

        Args:
            kinesis_client: A typed boto3 Kinesis client.
        """
        self._client = kinesis_client

    def put_records(
        self, stream_name: str, records: Sequence[PutRecordsEntry]
    ) -> dict[str, Any]:
        """
        Sends *records* in a single PutRecords call.

        Raises PartialPutRecordsError when the call itself succeeds but the
        service rejects one or more entries.
        """
        try:
            response = self._client.put_records(
                StreamName=stream_name, Records=list(records)
            )
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]
            context = {
                "stream_name": stream_name,
                "records_count": len(records),
                "aws_error_code": error_code,
                "aws_error_message": error_message,
            }

            # Map boto3 error codes to our specific exception types
            if error_code == "ResourceNotFoundException":
                raise StreamNotFoundError(stream_name, context=context) from e
            elif error_code in _ACCESS_DENIED_CODES:
                raise StreamAccessDeniedError(stream_name, context=context) from e
            elif error_code in _THROTTLING_CODES:
                raise StreamThrottlingError("PutRecords", context=context) from e
            elif error_code in _UNAVAILABLE_CODES:
                raise StreamTimeoutError("PutRecords", context=context) from e
            else:
                raise TransportError(
                    f"Kinesis client error: {error_message}", context=context
                ) from e
        except ReadTimeoutError as e:
            raise StreamTimeoutError(
                "PutRecords",
                context={"stream_name": stream_name, "timeout_error": str(e)},
            ) from e
        except EndpointConnectionError as e:
            raise StreamTimeoutError(
                "PutRecords",
                context={"stream_name": stream_name, "connection_error": str(e)},
            ) from e

        failed_count = response.get("FailedRecordCount", 0)
        if failed_count:
            error_codes = Counter(
                entry["ErrorCode"]
                for entry in response.get("Records", [])
                if entry.get("ErrorCode")
            )
            logger.warning(
                "PutRecords partially failed",
                extra={
                    "stream_name": stream_name,
                    "failed_count": failed_count,
                    "error_codes": dict(error_codes),
                },
            )
            raise PartialPutRecordsError(failed_count, len(records), dict(error_codes))

        logger.debug(
            "PutRecords completed successfully",
            extra={"stream_name": stream_name, "records_count": len(records)},
        )
        return response
