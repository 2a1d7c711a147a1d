"""Single-order synchronization: fetch one full record and merge it into the cache."""

import structlog

from ordersync.models.order import OrderRecord, Owner, calculate_partition_key
from ordersync.storage.order_store import OrderStore
from ordersync.sync.action_router import ActionRouter
from ordersync.sync.change_notifier import ChangeNotifier
from ordersync.sync.interfaces import RemoteSource
from ordersync.sync.models import (
    FetchedOrder,
    FetchOrder,
    OrderChangedEvent,
    RecordUpdated,
    SyncError,
    SyncErrorKind,
)

log = structlog.stdlib.get_logger()


class SingleItemSyncer:
    """Refreshes one cached order from the remote source.

    The remote record always wins: a successful fetch overwrites every field
    of the cached order, including unsynced local edits.
    """

    def __init__(
        self,
        remote_source: RemoteSource,
        order_store: OrderStore,
        notifier: ChangeNotifier,
        router: ActionRouter,
    ):
        self._remote_source = remote_source
        self._order_store = order_store
        self._notifier = notifier
        self._router = router

    def register(self) -> None:
        """Register this syncer's command handlers."""
        self._router.register(FetchOrder, lambda c: self.fetch_one(c.order, c.owner))
        self._router.register(FetchedOrder, lambda c: self.complete(c.order, c.owner, c.error))

    def fetch_one(self, order: OrderRecord, owner: Owner) -> None:
        """Request the full record of an order, if the owner is served by the REST API."""
        if not owner.uses_rest_api:
            log.debug(
                "order_fetch_skipped_unsupported_owner",
                owner_id=owner.local_id,
                remote_id=order.remote_id,
            )
            return

        log.info("fetching_order", local_id=order.local_id, remote_id=order.remote_id)
        self._router.submit_remote(
            lambda: self._remote_source.fetch_order(order, owner),
            on_result=lambda response: FetchedOrder(
                order=response.order, owner=owner, error=response.error
            ),
            on_error=lambda e: FetchedOrder(
                order=order,
                owner=owner,
                error=SyncError(kind=SyncErrorKind.GENERIC_ERROR, message=str(e)),
            ),
        )

    def complete(
        self, order: OrderRecord, owner: Owner, error: SyncError | None
    ) -> OrderChangedEvent:
        """
        Merge a fetched order into the cache and publish the outcome.

        On error the cache is left untouched and the error is published with
        rows_affected = 0. On success the order is overwrite-upserted, the
        change is published, and every list of the order's owner is
        invalidated.

        Args:
            order: The fetched order (or the original order on error)
            owner: Owner the order was fetched for
            error: Error reported by the remote source, if any

        Returns:
            The published change event
        """
        cause = RecordUpdated(local_id=order.local_id, remote_id=order.remote_id)

        if error is not None:
            log.warning(
                "order_fetch_failed",
                local_id=order.local_id,
                remote_id=order.remote_id,
                owner_id=owner.local_id,
                error_kind=error.kind,
                error=error.message,
            )
            event = OrderChangedEvent(cause=cause, rows_affected=0, error=error)
            self._notifier.on_order_changed(event)
            return event

        rows_affected = self._order_store.overwrite_upsert(order)
        log.info(
            "order_merged",
            local_id=order.local_id,
            remote_id=order.remote_id,
            rows_affected=rows_affected,
        )

        event = OrderChangedEvent(cause=cause, rows_affected=rows_affected)
        self._notifier.on_order_changed(event)
        self._notifier.on_list_partition_changed(calculate_partition_key(order.local_owner_id))
        return event
