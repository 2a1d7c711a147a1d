"""Property-based tests for retry logic with exponential backoff.

Feature: order-sync
"""

from unittest.mock import patch

import pytest
import structlog
from hypothesis import given, settings, strategies as st

from ordersync.models.config import RetryConfig
from ordersync.utils.retry import backoff_delay, call_with_backoff

log = structlog.stdlib.get_logger()


class FlakyCall:
    """Fails a fixed number of times, then returns "success"."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or ValueError("simulated failure")
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "success"


@given(
    st.integers(min_value=1, max_value=6),
    st.floats(min_value=0.01, max_value=5.0),
    st.floats(min_value=1.0, max_value=30.0),
)
@settings(max_examples=50, deadline=None)
def test_exponential_backoff_behavior(num_failures: int, base_delay: float, max_delay: float):
    """Each wait doubles the previous one until max_delay caps it."""
    log.info(
        "test_exponential_backoff_behavior",
        num_failures=num_failures,
        base_delay=base_delay,
    )
    policy = RetryConfig(max_retries=num_failures, base_delay=base_delay, max_delay=max_delay)
    call = FlakyCall(num_failures)

    with patch("ordersync.utils.retry.time.sleep") as sleep:
        result = call_with_backoff(call, policy, retry_on=(ValueError,))

    assert result == "success"
    assert call.calls == num_failures + 1

    delays = [c.args[0] for c in sleep.call_args_list]
    assert delays == [backoff_delay(policy, i) for i in range(num_failures)]
    for previous, current in zip(delays, delays[1:]):
        assert current == max_delay or current == pytest.approx(previous * 2)


@given(st.integers(min_value=0, max_value=10))
@settings(max_examples=50, deadline=None)
def test_retries_stop_after_max_retries(max_retries: int):
    """The last exception propagates once max_retries retries have failed."""
    call = FlakyCall(failures=max_retries + 5)

    with patch("ordersync.utils.retry.time.sleep") as sleep:
        with pytest.raises(ValueError):
            call_with_backoff(
                call, RetryConfig(max_retries=max_retries, base_delay=0.01), retry_on=(ValueError,)
            )

    assert call.calls == max_retries + 1
    assert sleep.call_count == max_retries


def test_unlisted_exceptions_are_not_retried():
    call = FlakyCall(failures=3, error=KeyError("not transient"))

    with patch("ordersync.utils.retry.time.sleep") as sleep:
        with pytest.raises(KeyError):
            call_with_backoff(call, RetryConfig(max_retries=3), retry_on=(ConnectionError,))

    assert call.calls == 1
    sleep.assert_not_called()


def test_transient_results_are_retried_until_accepted():
    responses = iter([503, 429, 200])

    with patch("ordersync.utils.retry.time.sleep") as sleep:
        result = call_with_backoff(
            lambda: next(responses),
            RetryConfig(max_retries=3, base_delay=2.0),
            transient_reason=lambda status: f"HTTP {status}" if status != 200 else None,
        )

    assert result == 200
    assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]


def test_last_transient_result_is_returned_when_retries_run_out():
    calls = 0

    def unavailable() -> int:
        nonlocal calls
        calls += 1
        return 503

    with patch("ordersync.utils.retry.time.sleep"):
        result = call_with_backoff(
            unavailable, RetryConfig(max_retries=2), transient_reason=lambda status: "HTTP 503"
        )

    assert result == 503
    assert calls == 3


def test_zero_retries_makes_a_single_attempt():
    call = FlakyCall(failures=1)

    with patch("ordersync.utils.retry.time.sleep") as sleep:
        with pytest.raises(ValueError):
            call_with_backoff(call, RetryConfig(max_retries=0), retry_on=(ValueError,))

    assert call.calls == 1
    sleep.assert_not_called()
