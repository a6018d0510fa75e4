"""
Shared fixtures for unit tests.
"""

from __future__ import annotations

import json
import os
import types
import uuid

import pytest

# The Lambda adapter reads its configuration and creates its boto3 client at
# import time, so the environment must be in place before test collection.
os.environ.setdefault("STREAM_NAME", "test-log-stream")
os.environ.setdefault("SERVICE_NAME", "kinesis-log-shipper-test")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "KinesisLogShipperTest")

from kinesis_shipper.config import AppConfig  # noqa: E402


def make_config(**overrides) -> AppConfig:
    """An AppConfig with the documented defaults, overridable per test."""
    values = {
        "stream_name": "test-log-stream",
        "service_name": "kinesis-log-shipper-test",
        "log_level": "INFO",
        "aggregation_enabled": True,
        "data_key": None,
        "log_truncate_max_size": 1024,
        "compression": "none",
        "chomp_record": False,
        "format_type": "json",
        "format_message_key": "message",
        "inject_time_key": None,
        "inject_tag_key": None,
        "inject_time_format": "%Y-%m-%dT%H:%M:%S.%f%z",
        "max_records_per_call": 128,
        "max_request_size_kb": 4096,
        "fixed_partition_key": None,
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def config_factory():
    return make_config


# ---------- Minimal, realistic dummy events ---------- #
def make_sqs_record(body: str | dict, message_id: str | None = None) -> dict:
    return {
        "messageId": message_id or str(uuid.uuid4()),
        "receiptHandle": "ignore",
        "body": body if isinstance(body, str) else json.dumps(body),
        "attributes": {},
        "messageAttributes": {},
        "md5OfBody": "dummy",
        "eventSource": "aws:sqs",
        "eventSourceARN": "arn:aws:sqs:eu-west-1:000000000000:dummy",
        "awsRegion": "eu-west-1",
    }


@pytest.fixture
def sqs_event() -> dict:
    """Two SQS records, each wrapping one log entry."""
    return {
        "Records": [
            make_sqs_record(
                {"tag": "app.access", "time": 1_700_000_000.5, "record": {"message": "GET /"}},
                message_id="msg-1",
            ),
            make_sqs_record(
                {"tag": "app.access", "time": 1_700_000_001.0, "record": {"message": "GET /health"}},
                message_id="msg-2",
            ),
        ]
    }


@pytest.fixture
def lambda_context():
    """A *very* small stand-in for the LambdaContext object."""
    return types.SimpleNamespace(
        function_name="kinesis-log-shipper",
        function_version="$LATEST",
        memory_limit_in_mb=128,
        aws_request_id="req-" + uuid.uuid4().hex,
        invoked_function_arn="arn:aws:lambda:eu-west-1:000000000000:function:dummy",
        get_remaining_time_in_millis=lambda: 30000,
    )
