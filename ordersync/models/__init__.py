"""Data models for the order sync engine."""

from ordersync.models.config import (
    AppConfig,
    LoggingConfig,
    RemoteConfig,
    RetryConfig,
    StoreConfig,
    WorkerConfig,
)
from ordersync.models.order import (
    DEFAULT_ORDER_STATUS_LIST,
    ListOrder,
    ListOrderBy,
    ListPartitionKey,
    LocalId,
    LocalOrRemoteId,
    OrderListDescriptor,
    OrderListItem,
    OrderRecord,
    OrderStatus,
    Owner,
    RemoteId,
    RestOwnerListDescriptor,
    calculate_partition_key,
)

__all__ = [
    "AppConfig",
    "LoggingConfig",
    "RemoteConfig",
    "RetryConfig",
    "StoreConfig",
    "WorkerConfig",
    "DEFAULT_ORDER_STATUS_LIST",
    "ListOrder",
    "ListOrderBy",
    "ListPartitionKey",
    "LocalId",
    "LocalOrRemoteId",
    "OrderListDescriptor",
    "OrderListItem",
    "OrderRecord",
    "OrderStatus",
    "Owner",
    "RemoteId",
    "RestOwnerListDescriptor",
    "calculate_partition_key",
]
