import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
_COMPRESSIONS = ("none", "zlib", "deflate")
_FORMAT_TYPES = ("json", "single_value")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def _env_optional(name: str) -> str | None:
    """Treats unset and empty variables alike."""
    value = os.getenv(name)
    return value if value else None


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    # --- Required Variables ---
    stream_name: str

    # --- Optional Variables with Defaults ---
    service_name: str
    log_level: str
    aggregation_enabled: bool

    # --- Record Formatting ---
    data_key: str | None
    log_truncate_max_size: int
    compression: str
    chomp_record: bool
    format_type: str
    format_message_key: str
    inject_time_key: str | None
    inject_tag_key: str | None
    inject_time_format: str

    # --- Call Limits ---
    max_records_per_call: int
    max_request_size_kb: int

    # --- Partitioning ---
    fixed_partition_key: str | None

    # --- Derived Properties ---
    @property
    def max_request_size_bytes(self) -> int:
        return self.max_request_size_kb * 1024

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid.
        """
        try:
            # --- Handle required string variables ---
            stream_name = os.environ["STREAM_NAME"]
            if not stream_name:
                raise ValueError("STREAM_NAME must not be empty.")

            service_name = os.getenv("SERVICE_NAME", "kinesis-log-shipper")
            aggregation_enabled = _env_bool("AGGREGATION_ENABLED", "true")

            # --- Handle special-case variables like log level ---
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )

            # --- Handle record formatting variables ---
            data_key = _env_optional("DATA_KEY")

            log_truncate_max_size = int(os.getenv("LOG_TRUNCATE_MAX_SIZE", "1024"))
            if log_truncate_max_size < 0:
                raise ValueError(
                    "LOG_TRUNCATE_MAX_SIZE must be a non-negative integer."
                )

            compression = os.getenv("COMPRESSION", "none").lower() or "none"
            if compression not in _COMPRESSIONS:
                raise ValueError(
                    f"COMPRESSION must be one of {list(_COMPRESSIONS)}, not '{compression}'"
                )

            chomp_record = _env_bool("CHOMP_RECORD", "false")

            format_type = os.getenv("FORMAT_TYPE", "json").lower()
            if format_type not in _FORMAT_TYPES:
                raise ValueError(
                    f"FORMAT_TYPE must be one of {list(_FORMAT_TYPES)}, not '{format_type}'"
                )
            format_message_key = os.getenv("FORMAT_MESSAGE_KEY", "message")

            inject_time_key = _env_optional("INJECT_TIME_KEY")
            inject_tag_key = _env_optional("INJECT_TAG_KEY")
            inject_time_format = os.getenv(
                "INJECT_TIME_FORMAT", "%Y-%m-%dT%H:%M:%S.%f%z"
            )

            # --- Handle call limits ---
            max_records_per_call = int(os.getenv("MAX_RECORDS_PER_CALL", "128"))
            if max_records_per_call <= 0:
                raise ValueError("MAX_RECORDS_PER_CALL must be a positive integer.")

            max_request_size_kb = int(os.getenv("MAX_REQUEST_SIZE_KB", "4096"))
            if max_request_size_kb <= 0:
                raise ValueError("MAX_REQUEST_SIZE_KB must be a positive integer.")

            fixed_partition_key = _env_optional("FIXED_PARTITION_KEY")
            if fixed_partition_key is not None and len(fixed_partition_key) > 256:
                raise ValueError(
                    "FIXED_PARTITION_KEY must be at most 256 characters long."
                )

        except KeyError as e:
            raise ConfigurationError(
                f"Missing required environment variable: {e.args[0]}"
            ) from e
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            stream_name=stream_name,
            service_name=service_name,
            log_level=log_level,
            aggregation_enabled=aggregation_enabled,
            data_key=data_key,
            log_truncate_max_size=log_truncate_max_size,
            compression=compression,
            chomp_record=chomp_record,
            format_type=format_type,
            format_message_key=format_message_key,
            inject_time_key=inject_time_key,
            inject_tag_key=inject_tag_key,
            inject_time_format=inject_time_format,
            max_records_per_call=max_records_per_call,
            max_request_size_kb=max_request_size_kb,
            fixed_partition_key=fixed_partition_key,
        )


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Loads the application configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading application configuration from environment...")
    return AppConfig.load_from_env()
