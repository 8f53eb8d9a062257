"""Bounded retry helper for remote calls.

Only failures classified as transient are retried, with linear backoff.
Everything else propagates on the first attempt.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from core.constants import RETRY_BACKOFF_SECONDS
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
T = TypeVar("T")


def call_with_retries(
    operation: Callable[[], T],
    is_transient: Callable[[Exception], bool],
    retries: int,
    description: str,
    backoff_seconds: float = RETRY_BACKOFF_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` and retry transient failures.

    Args:
        operation: Zero-argument callable performing one remote attempt.
        is_transient: Classifier deciding whether a failure may be retried.
        retries: Retries allowed after the first attempt.
        description: Short label used in log events.
        backoff_seconds: Base delay, multiplied by the attempt number.
        sleep: Sleep function, injectable for tests.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        Exception: The last failure once retries are exhausted, or the first
            non-transient failure.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as error:
            if attempt > retries or not is_transient(error):
                raise
            _LOGGER.warning(
                "remote_call_retry",
                operation=description,
                attempt=attempt,
                error=str(error),
            )
            sleep(backoff_seconds * attempt)
