"""Publishing of order change events and list invalidation signals."""

from typing import Callable, Protocol

import structlog

from ordersync.models.order import ListPartitionKey
from ordersync.sync.models import ListReconciledEvent, OrderChangedEvent

log = structlog.stdlib.get_logger()

OrderChangedListener = Callable[[OrderChangedEvent], None]


class ListConsumer(Protocol):
    """Receives the results of list synchronization."""

    def on_list_reconciled(self, event: ListReconciledEvent) -> None:
        ...

    def on_list_partition_changed(self, partition_key: ListPartitionKey) -> None:
        ...


class ChangeNotifier:
    """Fans change events out to registered listeners and list consumers.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event.
    """

    def __init__(self) -> None:
        self._order_listeners: list[OrderChangedListener] = []
        self._list_consumers: list[ListConsumer] = []

    def subscribe(self, listener: OrderChangedListener) -> None:
        """Register a callback for order change events."""
        self._order_listeners.append(listener)

    def unsubscribe(self, listener: OrderChangedListener) -> None:
        if listener in self._order_listeners:
            self._order_listeners.remove(listener)

    def add_list_consumer(self, consumer: ListConsumer) -> None:
        """Register a consumer of list reconciliation and invalidation signals."""
        self._list_consumers.append(consumer)

    def remove_list_consumer(self, consumer: ListConsumer) -> None:
        if consumer in self._list_consumers:
            self._list_consumers.remove(consumer)

    def on_order_changed(self, event: OrderChangedEvent) -> None:
        """Publish an order change event."""
        log.info(
            "order_changed",
            local_id=event.cause.local_id,
            remote_id=event.cause.remote_id,
            rows_affected=event.rows_affected,
            error_kind=event.error.kind if event.error else None,
        )
        for listener in list(self._order_listeners):
            self._deliver("order_changed", listener, event)

    def on_list_reconciled(self, event: ListReconciledEvent) -> None:
        """Publish the outcome of a reconciliation pass."""
        log.info(
            "list_reconciled",
            descriptor=event.descriptor.unique_key,
            id_count=len(event.remote_ids),
            loaded_more=event.loaded_more,
            can_load_more=event.can_load_more,
            error=event.error.message if event.error else None,
        )
        for consumer in list(self._list_consumers):
            self._deliver("list_reconciled", consumer.on_list_reconciled, event)

    def on_list_partition_changed(self, partition_key: ListPartitionKey) -> None:
        """Tell list consumers that every list under a partition is outdated."""
        log.info("list_partition_changed", partition_key=partition_key)
        for consumer in list(self._list_consumers):
            self._deliver(
                "list_partition_changed", consumer.on_list_partition_changed, partition_key
            )

    def _deliver(self, event_name: str, callback: Callable, payload: object) -> None:
        try:
            callback(payload)
        except Exception as e:
            log.error(
                "change_listener_failed",
                event_name=event_name,
                listener=getattr(callback, "__qualname__", repr(callback)),
                error=str(e),
                error_type=type(e).__name__,
            )
