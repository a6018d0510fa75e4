"""
The Lambda Adapter & Orchestrator for the Kinesis log shipper.

This module is the main entry point for the AWS Lambda function. It is
responsible for:
1.  Initializing and configuring AWS Lambda Powertools (Logger, Tracer, Metrics).
2.  Parsing incoming SQS messages, each carrying one log entry.
3.  Formatting every entry into the chunk for this invocation; entries that
    cannot be shipped are logged and skipped without failing their message.
4.  Writing the chunk to Kinesis through the configured output.
5.  Reporting partial batch failures. A failed write fails every message that
    contributed to the chunk, so SQS re-delivers the chunk as a whole.
"""

from typing import cast

import boto3
import pydantic
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.batch.types import (
    PartialItemFailureResponse,
    PartialItemFailures,
)
from aws_lambda_powertools.utilities.typing import LambdaContext

from .clients import KinesisClient
from .config import get_config
from .core import MemoryChunk, WriteSummary, build_output
from .exceptions import ShipperError, get_error_context, is_retryable_error
from .schemas import RawRecord

# --- Global & Reusable Components ---
CONFIG = get_config()

logger = Logger(service=CONFIG.service_name, level=CONFIG.log_level)
tracer = Tracer(service=CONFIG.service_name)
metrics = Metrics(
    namespace="KinesisLogShipper",
    service=CONFIG.service_name,
)

kinesis_boto_client = boto3.client("kinesis")
kinesis_client = KinesisClient(kinesis_client=kinesis_boto_client)
output = build_output(CONFIG, kinesis_client)


def build_partial_failure_response(
    failed_message_ids: set[str],
) -> PartialItemFailureResponse:
    """
    Given a set of SQS message IDs, return the structure that the
    Lambda partial batch response API expects.
    """
    failures = [
        cast(PartialItemFailures, {"itemIdentifier": mid})
        for mid in sorted(failed_message_ids)
    ]
    response = cast(PartialItemFailureResponse, {"batchItemFailures": failures})
    return response


@tracer.capture_method
def _write_chunk(chunk: MemoryChunk) -> WriteSummary:
    summary = output.write(chunk)
    metrics.add_metric(name="PutRecordsCalls", unit=MetricUnit.Count, value=summary.calls)
    metrics.add_metric(name="ShippedRecords", unit=MetricUnit.Count, value=summary.records)
    metrics.add_metric(name="ShippedBytes", unit=MetricUnit.Bytes, value=summary.bytes)
    return summary


def _ship_chunk(chunk: MemoryChunk, message_ids: list[str]) -> set[str]:
    """Writes the chunk and returns the message IDs to report as failed."""
    try:
        summary = _write_chunk(chunk)
    except ShipperError as e:
        retryable = is_retryable_error(e)
        metrics.add_metric(
            name="RetryableShipErrors" if retryable else "NonRetryableShipErrors",
            unit=MetricUnit.Count,
            value=1,
        )
        # Transport errors are logged in full; only skip diagnostics are truncated.
        log_level = logger.warning if retryable else logger.error
        log_level(
            f"Failed to write chunk: {e}",
            extra={"error": get_error_context(e), "chunk_id": chunk.unique_id},
        )
        return set(message_ids)
    except Exception:
        metrics.add_metric(name="UnexpectedShipErrors", unit=MetricUnit.Count, value=1)
        logger.exception(
            "Unexpected error while writing chunk.", extra={"chunk_id": chunk.unique_id}
        )
        return set(message_ids)

    logger.info(
        "Chunk shipped",
        extra={
            "chunk_id": chunk.unique_id,
            "calls": summary.calls,
            "records": summary.records,
            "bytes": summary.bytes,
        },
    )
    return set()


@logger.inject_lambda_context()
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event: dict, context: LambdaContext) -> PartialItemFailureResponse:
    """Main Lambda handler for SQS events carrying log entries."""
    sqs_records: list[dict] = event.get("Records", [])
    if not sqs_records:
        logger.warning("Event did not contain any SQS records. Exiting gracefully.")
        return {"batchItemFailures": []}

    chunk = MemoryChunk(unique_id=context.aws_request_id)
    chunk_message_ids: list[str] = []
    failed_message_ids: set[str] = set()
    skipped = 0

    # --- 1. Parse each message and format its entry into the chunk ---
    for sqs_record in sqs_records:
        message_id = sqs_record["messageId"]
        try:
            raw = RawRecord.model_validate_json(sqs_record["body"])
        except (pydantic.ValidationError, KeyError, TypeError) as e:
            metrics.add_metric(name="InvalidMessages", unit=MetricUnit.Count, value=1)
            logger.warning(
                "Failed to parse SQS message body.",
                extra={"messageId": message_id, "error": str(e)},
            )
            failed_message_ids.add(message_id)
            continue

        payload = output.format(raw.tag, raw.time, raw.record)
        if payload is None:
            skipped += 1
        chunk.append(payload)
        chunk_message_ids.append(message_id)

    if skipped:
        metrics.add_metric(name="SkippedRecords", unit=MetricUnit.Count, value=skipped)

    logger.info(
        "Chunk assembled",
        extra={
            "chunk_id": chunk.unique_id,
            "sqs_messages": len(sqs_records),
            "entries": len(chunk),
            "skipped_records": skipped,
            "invalid_messages": len(failed_message_ids),
        },
    )

    # --- 2. Ship the chunk, unless every entry was skipped ---
    if len(chunk) > skipped:
        failed_message_ids.update(_ship_chunk(chunk, chunk_message_ids))
    else:
        logger.info("No records to ship after validation.")

    # --- 3. Return the final result ---
    if failed_message_ids:
        return build_partial_failure_response(failed_message_ids)

    return {"batchItemFailures": []}
