"""Property-based tests for command routing.

Feature: order-sync
"""

import threading
import time

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from pydantic import BaseModel

from ordersync.sync.action_router import ActionRouter


class Ping(BaseModel):
    n: int


class Pong(BaseModel):
    n: int


class Orphan(BaseModel):
    pass


@given(numbers=st.lists(st.integers(), max_size=30))
@settings(max_examples=30, deadline=None)
def test_commands_are_handled_in_fifo_order(numbers: list[int]) -> None:
    handled: list[int] = []
    with ActionRouter(max_remote_workers=1, poll_interval=0.01) as router:
        router.register(Ping, lambda c: handled.append(c.n))
        for n in numbers:
            router.dispatch(Ping(n=n))

        processed = router.run_until_idle(timeout=5)

    assert handled == numbers
    assert processed == len(numbers)


def test_duplicate_registration_is_rejected() -> None:
    with ActionRouter() as router:
        router.register(Ping, lambda c: None)
        with pytest.raises(ValueError):
            router.register(Ping, lambda c: None)


def test_remote_results_come_back_as_commands() -> None:
    results: list[int] = []
    with ActionRouter(max_remote_workers=2, poll_interval=0.01) as router:
        router.register(
            Ping,
            lambda c: router.submit_remote(
                lambda: c.n * 10,
                on_result=lambda value: Pong(n=value),
                on_error=lambda e: Pong(n=-1),
            ),
        )
        router.register(Pong, lambda c: results.append(c.n))
        router.dispatch(Ping(n=4))

        router.run_until_idle(timeout=5)

    assert results == [40]


def test_remote_exception_becomes_error_command() -> None:
    results: list[int] = []

    def failing_call() -> int:
        raise ConnectionError("remote down")

    with ActionRouter(poll_interval=0.01) as router:
        router.register(Pong, lambda c: results.append(c.n))
        router.submit_remote(
            failing_call,
            on_result=lambda value: Pong(n=value),
            on_error=lambda e: Pong(n=-1),
        )

        router.run_until_idle(timeout=5)

    assert results == [-1]


def test_handlers_never_overlap() -> None:
    """Results posted from several remote threads are still handled one at a time."""
    active = 0
    max_active = 0
    lock = threading.Lock()

    def handler(command: Pong) -> None:
        nonlocal active, max_active
        with lock:
            active += 1
            max_active = max(max_active, active)
        time.sleep(0.005)
        with lock:
            active -= 1

    with ActionRouter(max_remote_workers=8, poll_interval=0.01) as router:
        router.register(Pong, handler)
        for n in range(20):
            router.submit_remote(
                lambda n=n: n, on_result=lambda v: Pong(n=v), on_error=lambda e: Pong(n=-1)
            )
        processed = router.run_until_idle(timeout=10)

    assert processed == 20
    assert max_active == 1


def test_failing_handler_does_not_stop_the_queue() -> None:
    handled: list[int] = []

    def handler(command: Ping) -> None:
        if command.n == 1:
            raise RuntimeError("handler bug")
        handled.append(command.n)

    with ActionRouter(poll_interval=0.01) as router:
        router.register(Ping, handler)
        for n in range(3):
            router.dispatch(Ping(n=n))
        router.dispatch(Orphan())

        router.run_until_idle(timeout=5)

    assert handled == [0, 2]


def test_background_worker_drains_queue() -> None:
    done = threading.Event()
    with ActionRouter(poll_interval=0.01) as router:
        router.register(Ping, lambda c: done.set())
        router.start()
        with pytest.raises(RuntimeError):
            router.run_until_idle()

        router.dispatch(Ping(n=1))

        assert done.wait(timeout=5)
        router.stop()


def test_run_until_idle_times_out_with_slow_remote_call() -> None:
    release = threading.Event()
    with ActionRouter(poll_interval=0.01) as router:
        router.register(Pong, lambda c: None)
        router.submit_remote(
            lambda: release.wait(5), on_result=lambda v: Pong(n=1), on_error=lambda e: Pong(n=-1)
        )

        router.run_until_idle(timeout=0.1)
        assert router.in_flight == 1

        release.set()
        router.run_until_idle(timeout=5)
        assert router.is_idle()
