# src/kinesis_shipper/reporting.py

"""Diagnostics for records that are skipped instead of shipped."""

import logging

from .records import SkipReason

logger = logging.getLogger(__name__)


def truncate(message: object, max_len: int) -> str:
    """Returns at most *max_len* characters of *message*; 0 disables truncation."""
    text = str(message)
    if max_len == 0 or len(text) <= max_len:
        return text
    return text[:max_len]


class ErrorReporter:
    """
    Logs per-record skip reasons, truncated so that one huge record cannot
    flood the log stream. Never raises.
    """

    def __init__(self, max_len: int = 1024):
        self._max_len = max_len

    def report(self, reason: SkipReason) -> None:
        logger.error(
            truncate(reason, self._max_len),
            extra={"skip_kind": reason.kind.value, "record_size": reason.size},
        )
