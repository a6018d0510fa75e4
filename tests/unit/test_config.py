# tests/unit/test_config.py

import pytest

# Import the components to be tested
from kinesis_shipper.config import get_config
from kinesis_shipper.exceptions import ConfigurationError

_ALL_VARIABLES = [
    "STREAM_NAME",
    "SERVICE_NAME",
    "LOG_LEVEL",
    "AGGREGATION_ENABLED",
    "DATA_KEY",
    "LOG_TRUNCATE_MAX_SIZE",
    "COMPRESSION",
    "CHOMP_RECORD",
    "FORMAT_TYPE",
    "FORMAT_MESSAGE_KEY",
    "INJECT_TIME_KEY",
    "INJECT_TAG_KEY",
    "INJECT_TIME_FORMAT",
    "MAX_RECORDS_PER_CALL",
    "MAX_REQUEST_SIZE_KB",
    "FIXED_PARTITION_KEY",
]


@pytest.fixture(autouse=True)
def clear_config_cache(monkeypatch):
    """
    Clears the lru_cache for get_config and the shipper's environment before
    each test, so every test builds its configuration from scratch.
    """
    for name in _ALL_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def mock_valid_env(monkeypatch):
    """Sets a valid environment for a single test."""
    monkeypatch.setenv("STREAM_NAME", "app-logs")
    monkeypatch.setenv("SERVICE_NAME", "test-service")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("AGGREGATION_ENABLED", "false")
    monkeypatch.setenv("DATA_KEY", "message")
    monkeypatch.setenv("LOG_TRUNCATE_MAX_SIZE", "0")
    monkeypatch.setenv("COMPRESSION", "zlib")
    monkeypatch.setenv("CHOMP_RECORD", "yes")
    monkeypatch.setenv("FORMAT_TYPE", "single_value")
    monkeypatch.setenv("FORMAT_MESSAGE_KEY", "log")
    monkeypatch.setenv("INJECT_TIME_KEY", "@timestamp")
    monkeypatch.setenv("INJECT_TAG_KEY", "tag")
    monkeypatch.setenv("MAX_RECORDS_PER_CALL", "250")
    monkeypatch.setenv("MAX_REQUEST_SIZE_KB", "1024")
    monkeypatch.setenv("FIXED_PARTITION_KEY", "tenant-a")


def test_get_config_happy_path(mock_valid_env):
    """Tests that configuration loads correctly when all env vars are set."""
    # ACT: Call the factory function
    config = get_config()

    # ASSERT
    assert config.stream_name == "app-logs"
    assert config.service_name == "test-service"
    assert config.log_level == "DEBUG"
    assert config.aggregation_enabled is False
    assert config.data_key == "message"
    assert config.log_truncate_max_size == 0
    assert config.compression == "zlib"
    assert config.chomp_record is True
    assert config.format_type == "single_value"
    assert config.format_message_key == "log"
    assert config.inject_time_key == "@timestamp"
    assert config.inject_tag_key == "tag"
    assert config.max_records_per_call == 250
    assert config.max_request_size_kb == 1024
    assert config.max_request_size_bytes == 1024 * 1024
    assert config.fixed_partition_key == "tenant-a"


def test_get_config_uses_defaults(monkeypatch):
    """Tests that optional variables fall back to their default values."""
    # ARRANGE: Set only the required variables
    monkeypatch.setenv("STREAM_NAME", "app-logs")

    # ACT
    config = get_config()

    # ASSERT
    assert config.service_name == "kinesis-log-shipper"
    assert config.log_level == "INFO"
    assert config.aggregation_enabled is True
    assert config.data_key is None
    assert config.log_truncate_max_size == 1024
    assert config.compression == "none"
    assert config.chomp_record is False
    assert config.format_type == "json"
    assert config.inject_time_key is None
    assert config.inject_time_format == "%Y-%m-%dT%H:%M:%S.%f%z"
    assert config.max_records_per_call == 128
    assert config.max_request_size_bytes == 4096 * 1024
    assert config.fixed_partition_key is None


def test_get_config_treats_empty_optional_values_as_unset(monkeypatch):
    monkeypatch.setenv("STREAM_NAME", "app-logs")
    monkeypatch.setenv("DATA_KEY", "")
    monkeypatch.setenv("FIXED_PARTITION_KEY", "")

    config = get_config()

    assert config.data_key is None
    assert config.fixed_partition_key is None


def test_get_config_raises_error_on_missing_required_var():
    """Tests that a ConfigurationError is raised if a required variable is missing."""
    with pytest.raises(ConfigurationError, match="Missing required environment variable: STREAM_NAME"):
        get_config()


@pytest.mark.parametrize(
    "name, value",
    [
        ("MAX_RECORDS_PER_CALL", "0"),
        ("MAX_RECORDS_PER_CALL", "many"),
        ("MAX_REQUEST_SIZE_KB", "-1"),
        ("LOG_TRUNCATE_MAX_SIZE", "-5"),
        ("LOG_LEVEL", "VERBOSE"),
        ("COMPRESSION", "gzip"),
        ("FORMAT_TYPE", "msgpack"),
        ("FIXED_PARTITION_KEY", "k" * 257),
        ("STREAM_NAME", ""),
    ],
)
def test_get_config_raises_error_on_invalid_values(monkeypatch, name, value):
    """Tests that malformed values fail fast at load time."""
    monkeypatch.setenv("STREAM_NAME", "app-logs")
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError, match="Invalid value for an environment variable"):
        get_config()


def test_get_config_is_cached(mock_valid_env):
    """Tests that get_config returns the same instance when called multiple times."""
    # ACT
    config1 = get_config()
    config2 = get_config()

    # ASSERT
    assert config1 is config2  # Same object instance due to lru_cache
