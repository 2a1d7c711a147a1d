"""Exponential backoff for transient failures of remote order API calls."""

import time
from typing import Callable, Optional, Tuple, Type, TypeVar

import structlog

from ordersync.models.config import RetryConfig

log = structlog.stdlib.get_logger()

T = TypeVar("T")


def backoff_delay(policy: RetryConfig, retry_number: int) -> float:
    """Seconds to wait before retry number retry_number (counting from 0)."""
    return min(policy.base_delay * (2**retry_number), policy.max_delay)


def call_with_backoff(
    call: Callable[[], T],
    policy: RetryConfig,
    retry_on: Tuple[Type[Exception], ...] = (),
    transient_reason: Optional[Callable[[T], Optional[str]]] = None,
    operation: str = "remote_call",
) -> T:
    """
    Run a remote call, retrying transient failures with exponential backoff.

    A failure is transient when the call raises one of retry_on, or when
    transient_reason returns a reason for the value it returned (an HTTP 503
    response, for instance). Once policy.max_retries retries have failed, the
    last exception propagates, or the last value is returned as is so the
    caller can report it.

    Args:
        call: The remote call
        policy: Retry count and delays
        retry_on: Exception types that are retried
        transient_reason: Returns why a result must be retried, or None to accept it
        operation: Name of the call for log entries

    Returns:
        The first accepted result, or the last result once retries run out
    """
    retry_number = 0
    while True:
        try:
            result = call()
        except retry_on as e:
            if retry_number >= policy.max_retries:
                log.error(
                    "remote_retries_exhausted",
                    operation=operation,
                    retries=retry_number,
                    error=str(e),
                )
                raise
            reason = f"{type(e).__name__}: {e}"
        else:
            reason = transient_reason(result) if transient_reason else None
            if reason is None:
                return result
            if retry_number >= policy.max_retries:
                log.error(
                    "remote_retries_exhausted",
                    operation=operation,
                    retries=retry_number,
                    reason=reason,
                )
                return result

        delay = backoff_delay(policy, retry_number)
        retry_number += 1
        log.warning(
            "retrying_remote_call",
            operation=operation,
            retry=retry_number,
            max_retries=policy.max_retries,
            delay_seconds=delay,
            reason=reason,
        )
        time.sleep(delay)
