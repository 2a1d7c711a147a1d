"""Single-consumer command routing for the sync engine."""

import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

import structlog
from pydantic import BaseModel

log = structlog.stdlib.get_logger()

T = TypeVar("T")
Handler = Callable[[Any], None]


class ActionRouter:
    """Routes commands to their handlers, one at a time, in FIFO order.

    Any thread may dispatch commands. They are drained by a single consumer,
    either the caller of run_until_idle() or the background worker started
    with start(), so no two handlers ever run concurrently.

    Remote calls never run on the consumer. submit_remote() runs them on a
    thread pool and posts the command built from their result back onto the
    queue when they complete.
    """

    def __init__(self, max_remote_workers: int = 4, poll_interval: float = 0.05):
        """
        Initialize the router.

        Args:
            max_remote_workers: Threads available for in-flight remote calls
            poll_interval: Seconds the consumer waits on an empty queue before
                           re-checking for shutdown or idleness
        """
        self._queue: queue.Queue[BaseModel] = queue.Queue()
        self._handlers: dict[type[BaseModel], Handler] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_remote_workers, thread_name_prefix="ordersync-remote"
        )
        self._poll_interval = poll_interval
        self._in_flight = 0
        self._lock = threading.Lock()
        self._running = False
        self._worker_thread: threading.Thread | None = None

    def register(self, command_type: type[BaseModel], handler: Handler) -> None:
        """
        Register the handler for a command type.

        Raises:
            ValueError: If the command type already has a handler
        """
        if command_type in self._handlers:
            raise ValueError(f"Handler already registered for {command_type.__name__}")
        self._handlers[command_type] = handler
        log.debug("command_handler_registered", command=command_type.__name__)

    def dispatch(self, command: BaseModel) -> None:
        """Enqueue a command. Safe to call from any thread."""
        self._queue.put(command)
        log.debug("command_dispatched", command=type(command).__name__)

    def submit_remote(
        self,
        call: Callable[[], T],
        on_result: Callable[[T], BaseModel],
        on_error: Callable[[Exception], BaseModel],
    ) -> Future:
        """
        Run a remote call off the consumer and enqueue its outcome as a command.

        Args:
            call: The blocking remote call
            on_result: Builds the response command from the call's return value
            on_error: Builds the response command if the call raises

        Returns:
            The future of the remote call
        """
        with self._lock:
            self._in_flight += 1
        try:
            future = self._executor.submit(call)
        except RuntimeError:
            with self._lock:
                self._in_flight -= 1
            raise
        future.add_done_callback(lambda f: self._post_result(f, on_result, on_error))
        return future

    @property
    def in_flight(self) -> int:
        """Number of remote calls whose result has not been enqueued yet."""
        with self._lock:
            return self._in_flight

    @property
    def pending(self) -> int:
        """Number of queued commands."""
        return self._queue.qsize()

    def is_idle(self) -> bool:
        """True when no command is queued and no remote call is in flight."""
        with self._lock:
            return self._in_flight == 0 and self._queue.empty()

    def process_next(self, timeout: float = 0.0) -> bool:
        """
        Handle the next queued command.

        Args:
            timeout: Seconds to wait for a command; 0 means do not wait

        Returns:
            True if a command was handled, False if none arrived in time
        """
        try:
            if timeout > 0:
                command = self._queue.get(timeout=timeout)
            else:
                command = self._queue.get_nowait()
        except queue.Empty:
            return False

        try:
            self._handle(command)
        finally:
            self._queue.task_done()
        return True

    def run_until_idle(self, timeout: float | None = None) -> int:
        """
        Drain the queue on the calling thread until nothing is queued or in flight.

        Args:
            timeout: Optional limit in seconds; None waits for idleness

        Returns:
            Number of commands handled

        Raises:
            RuntimeError: If the background worker is running
        """
        if self._running:
            raise RuntimeError("run_until_idle cannot be used while the background worker runs")

        deadline = None if timeout is None else time.monotonic() + timeout
        processed = 0

        while deadline is None or time.monotonic() < deadline:
            if self.process_next(timeout=self._poll_interval):
                processed += 1
                continue
            if self.is_idle():
                return processed

        log.warning(
            "run_until_idle_timed_out",
            processed=processed,
            pending=self.pending,
            in_flight=self.in_flight,
        )
        return processed

    def start(self) -> None:
        """Start draining the queue on a background worker thread."""
        if self._running:
            log.warning("router_already_running")
            return

        self._running = True
        self._worker_thread = threading.Thread(
            target=self._worker_loop, name="ordersync-worker", daemon=True
        )
        self._worker_thread.start()
        log.info("router_started", handlers=[t.__name__ for t in self._handlers])

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background worker. Queued commands stay queued."""
        if not self._running:
            return

        self._running = False
        if self._worker_thread:
            self._worker_thread.join(timeout=timeout)
            self._worker_thread = None
        log.info("router_stopped", pending=self.pending)

    def close(self) -> None:
        """Stop the worker and wait for in-flight remote calls to finish."""
        self.stop()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "ActionRouter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _worker_loop(self) -> None:
        while self._running:
            self.process_next(timeout=self._poll_interval)

    def _handle(self, command: BaseModel) -> None:
        command_name = type(command).__name__
        handler = self._handlers.get(type(command))
        if handler is None:
            log.warning("unhandled_command", command=command_name)
            return

        try:
            handler(command)
        except Exception as e:
            log.error(
                "command_handler_failed",
                command=command_name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    def _post_result(
        self,
        future: Future,
        on_result: Callable[[Any], BaseModel],
        on_error: Callable[[Exception], BaseModel],
    ) -> None:
        try:
            try:
                command = on_result(future.result())
            except Exception as e:
                log.error("remote_call_failed", error=str(e), error_type=type(e).__name__)
                command = on_error(e)
            self._queue.put(command)
        finally:
            with self._lock:
                self._in_flight -= 1
