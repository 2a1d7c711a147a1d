"""Wiring of the order sync components around one command router."""

from dataclasses import dataclass, field

import structlog

from ordersync.models.order import OrderListDescriptor, OrderRecord, Owner
from ordersync.storage.order_store import OrderStore
from ordersync.sync.action_router import ActionRouter
from ordersync.sync.change_detector import ChangeDetector
from ordersync.sync.change_notifier import ChangeNotifier
from ordersync.sync.interfaces import RemoteSource
from ordersync.sync.list_sync_coordinator import ListSyncCoordinator
from ordersync.sync.models import FetchOrder, FetchOrderList
from ordersync.sync.single_item_syncer import SingleItemSyncer

log = structlog.stdlib.get_logger()


@dataclass
class SyncDependencies:
    """Collaborators of the sync engine, constructed once at startup."""

    remote_source: RemoteSource
    order_store: OrderStore
    notifier: ChangeNotifier = field(default_factory=ChangeNotifier)


class OrderSyncEngine:
    """Entry point for order synchronization.

    Commands issued here are queued on the engine's router and handled by a
    single consumer. Call run_until_idle() to drain on the current thread, or
    start()/stop() to drain on a background worker.
    """

    def __init__(
        self,
        dependencies: SyncDependencies,
        max_remote_workers: int = 4,
        drop_superseded_pages: bool = False,
    ):
        """
        Initialize the engine and register every command handler.

        Args:
            dependencies: Remote source, order store and notifier
            max_remote_workers: Threads available for in-flight remote calls
            drop_superseded_pages: Drop list responses older than the latest fetch
        """
        self.dependencies = dependencies
        self.router = ActionRouter(max_remote_workers=max_remote_workers)

        self.list_coordinator = ListSyncCoordinator(
            remote_source=dependencies.remote_source,
            order_store=dependencies.order_store,
            notifier=dependencies.notifier,
            router=self.router,
            change_detector=ChangeDetector(),
            drop_superseded_pages=drop_superseded_pages,
        )
        self.single_item_syncer = SingleItemSyncer(
            remote_source=dependencies.remote_source,
            order_store=dependencies.order_store,
            notifier=dependencies.notifier,
            router=self.router,
        )
        self.list_coordinator.register()
        self.single_item_syncer.register()

        log.info(
            "order_sync_engine_initialized",
            max_remote_workers=max_remote_workers,
            drop_superseded_pages=drop_superseded_pages,
        )

    @property
    def notifier(self) -> ChangeNotifier:
        return self.dependencies.notifier

    def fetch_order_list(self, descriptor: OrderListDescriptor, offset: int = 0) -> None:
        """Queue a fetch of one page of an order list."""
        self.router.dispatch(FetchOrderList(descriptor=descriptor, offset=offset))

    def fetch_order(self, order: OrderRecord, owner: Owner) -> None:
        """Queue a refresh of one cached order."""
        self.router.dispatch(FetchOrder(order=order, owner=owner))

    def run_until_idle(self, timeout: float | None = None) -> int:
        return self.router.run_until_idle(timeout=timeout)

    def start(self) -> None:
        self.router.start()

    def stop(self) -> None:
        self.router.stop()

    def close(self) -> None:
        self.router.close()

    def __enter__(self) -> "OrderSyncEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
