"""List synchronization: fetch a page of summaries and refresh stale cached orders."""

import structlog

from ordersync.models.order import OrderListDescriptor, OrderListItem, RestOwnerListDescriptor
from ordersync.storage.order_store import OrderStore
from ordersync.sync.action_router import ActionRouter
from ordersync.sync.change_detector import ChangeDetector
from ordersync.sync.change_notifier import ChangeNotifier
from ordersync.sync.interfaces import RemoteSource
from ordersync.sync.models import (
    FetchedOrderList,
    FetchOrder,
    FetchOrderList,
    FetchOrderListResponse,
    ListError,
    ListErrorKind,
    ListReconciledEvent,
    SyncError,
    SyncErrorKind,
)

log = structlog.stdlib.get_logger()


class ListSyncCoordinator:
    """Drives one page of order list synchronization at a time.

    A page of lightweight summaries is compared against the cache and a full
    fetch is dispatched only for cached orders whose fingerprint changed.
    Orders that are not cached are never created from list data.
    """

    def __init__(
        self,
        remote_source: RemoteSource,
        order_store: OrderStore,
        notifier: ChangeNotifier,
        router: ActionRouter,
        change_detector: ChangeDetector | None = None,
        drop_superseded_pages: bool = False,
    ):
        """
        Initialize the list sync coordinator.

        Args:
            remote_source: Remote source serving list pages
            order_store: Local order cache
            notifier: Receives the reconciled list events
            router: Command router used for remote calls and fetch dispatches
            change_detector: Optional detector (a default one is created if None)
            drop_superseded_pages: If True, a page response is dropped when the
                                   list was refreshed from offset 0 after it was fetched
        """
        self._remote_source = remote_source
        self._order_store = order_store
        self._notifier = notifier
        self._router = router
        self._change_detector = change_detector or ChangeDetector()
        self._drop_superseded_pages = drop_superseded_pages
        self._generations: dict[str, int] = {}

    def register(self) -> None:
        """Register this coordinator's command handlers."""
        self._router.register(FetchOrderList, lambda c: self.fetch(c.descriptor, c.offset))
        self._router.register(
            FetchedOrderList,
            lambda c: self.reconcile(
                c.descriptor,
                c.items,
                c.loaded_more,
                c.can_load_more,
                c.error,
                generation=c.generation,
            ),
        )

    def fetch(self, descriptor: OrderListDescriptor, offset: int) -> None:
        """
        Request one page of an order list from the remote source.

        Descriptors of an unsupported protocol variant are ignored.

        Args:
            descriptor: The list to fetch
            offset: Index of the first order of the page
        """
        match descriptor:
            case RestOwnerListDescriptor():
                generation = self._generation_for(descriptor, offset)
                log.info(
                    "fetching_order_list",
                    descriptor=descriptor.unique_key,
                    offset=offset,
                    generation=generation,
                )
                self._router.submit_remote(
                    lambda: self._remote_source.fetch_order_list(descriptor, offset),
                    on_result=lambda response: self._to_command(response, generation),
                    on_error=lambda e: FetchedOrderList(
                        descriptor=descriptor,
                        loaded_more=offset > 0,
                        error=SyncError(kind=SyncErrorKind.GENERIC_ERROR, message=str(e)),
                        generation=generation,
                    ),
                )
            case _:
                log.debug("unsupported_list_descriptor", kind=descriptor.kind)

    def reconcile(
        self,
        descriptor: OrderListDescriptor,
        items: list[OrderListItem],
        loaded_more: bool,
        can_load_more: bool,
        error: SyncError | None,
        generation: int | None = None,
    ) -> ListReconciledEvent | None:
        """
        Reconcile a page of remote summaries with the local cache.

        On error no diffing is done and an empty page with a generic list
        error is reported. Otherwise every cached order whose fingerprint
        differs from its summary gets a FetchOrder dispatch, and the page's
        remote IDs are reported in page order whether stale or not.

        Args:
            descriptor: The list the page belongs to
            items: Remote summaries in page order
            loaded_more: True if this page continues an earlier one
            can_load_more: True if more pages are available
            error: Error reported by the remote source, if any
            generation: Fetch generation the page answers, if known

        Returns:
            The published event, or None if the page was dropped as superseded
        """
        if self._is_superseded(descriptor, generation):
            log.info(
                "superseded_order_list_dropped",
                descriptor=descriptor.unique_key,
                generation=generation,
                latest_generation=self._generations.get(descriptor.unique_key),
            )
            return None

        list_error: ListError | None = None
        remote_ids: list[int]

        if error is not None:
            log.warning(
                "order_list_fetch_failed",
                descriptor=descriptor.unique_key,
                error_kind=error.kind,
                error=error.message,
            )
            list_error = ListError(kind=ListErrorKind.GENERIC_ERROR, message=error.message)
            remote_ids = []
        else:
            remote_ids = [item.remote_order_id for item in items]
            owner = descriptor.owner
            local_orders = self._order_store.get_orders_by_remote_ids(remote_ids, owner.local_id)

            stale = self._change_detector.find_stale(items, local_orders)
            for _, order in stale:
                self._router.dispatch(FetchOrder(order=order, owner=owner))

            log.info(
                "order_list_reconciled",
                descriptor=descriptor.unique_key,
                page_size=len(items),
                cached=len(local_orders),
                fetches_dispatched=len(stale),
            )

        event = ListReconciledEvent(
            descriptor=descriptor,
            remote_ids=remote_ids,
            loaded_more=loaded_more,
            can_load_more=can_load_more,
            error=list_error,
        )
        self._notifier.on_list_reconciled(event)
        return event

    def _generation_for(self, descriptor: OrderListDescriptor, offset: int) -> int:
        # A refresh starts a new generation; load-more pages extend the current one.
        key = descriptor.unique_key
        if offset == 0:
            self._generations[key] = self._generations.get(key, 0) + 1
        return self._generations.get(key, 0)

    def _is_superseded(self, descriptor: OrderListDescriptor, generation: int | None) -> bool:
        if not self._drop_superseded_pages or generation is None:
            return False
        return generation < self._generations.get(descriptor.unique_key, 0)

    @staticmethod
    def _to_command(response: FetchOrderListResponse, generation: int) -> FetchedOrderList:
        return FetchedOrderList(
            descriptor=response.descriptor,
            items=response.items,
            loaded_more=response.loaded_more,
            can_load_more=response.can_load_more,
            error=response.error,
            generation=generation,
        )
