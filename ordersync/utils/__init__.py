"""Utility modules for the order sync engine."""

from ordersync.utils.retry import backoff_delay, call_with_backoff

__all__ = ["backoff_delay", "call_with_backoff"]
