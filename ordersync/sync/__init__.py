"""Synchronization components for keeping cached orders up to date."""

from ordersync.sync.action_router import ActionRouter
from ordersync.sync.change_detector import ChangeDetector, is_stale
from ordersync.sync.change_notifier import ChangeNotifier, ListConsumer
from ordersync.sync.engine import OrderSyncEngine, SyncDependencies
from ordersync.sync.interfaces import RemoteSource
from ordersync.sync.list_sync_coordinator import ListSyncCoordinator
from ordersync.sync.models import (
    FetchedOrder,
    FetchedOrderList,
    FetchOrder,
    FetchOrderList,
    FetchOrderListResponse,
    FetchOrderResponse,
    ListError,
    ListErrorKind,
    ListReconciledEvent,
    OrderChangedEvent,
    RecordUpdated,
    SyncError,
    SyncErrorKind,
)
from ordersync.sync.single_item_syncer import SingleItemSyncer

__all__ = [
    "ActionRouter",
    "ChangeDetector",
    "ChangeNotifier",
    "FetchedOrder",
    "FetchedOrderList",
    "FetchOrder",
    "FetchOrderList",
    "FetchOrderListResponse",
    "FetchOrderResponse",
    "ListConsumer",
    "ListError",
    "ListErrorKind",
    "ListReconciledEvent",
    "ListSyncCoordinator",
    "OrderChangedEvent",
    "OrderSyncEngine",
    "RecordUpdated",
    "RemoteSource",
    "SingleItemSyncer",
    "SyncDependencies",
    "SyncError",
    "SyncErrorKind",
    "is_stale",
]
