"""
Command line synchronization of one buyer's order list.

Fetches list pages for a buyer, refreshes every cached order whose summary
changed, and prints a summary.

Usage:
    ordersync-sync --owner-id 1 --owner-remote-id 42 [--config CONFIG_PATH] [--pages N]
"""

import argparse
import sys
from datetime import datetime
from typing import Any

import structlog

from ordersync.models.config import AppConfig
from ordersync.models.order import (
    ListOrder,
    ListOrderBy,
    ListPartitionKey,
    Owner,
    RestOwnerListDescriptor,
)
from ordersync.providers import build_engine
from ordersync.sync.engine import OrderSyncEngine
from ordersync.sync.models import ListReconciledEvent, OrderChangedEvent
from ordersync.utils.config_loader import ConfigLoader, ConfigurationError
from ordersync.utils.logging_config import configure_logging

log = structlog.stdlib.get_logger()


class SyncStats:
    """Collects engine events for the end-of-run summary."""

    def __init__(self) -> None:
        self.pages: list[ListReconciledEvent] = []
        self.orders_refreshed = 0
        self.order_errors: list[str] = []
        self.invalidated_partitions: set[str] = set()

    def on_order_changed(self, event: OrderChangedEvent) -> None:
        if event.error is not None:
            self.order_errors.append(f"{event.cause.remote_id}: {event.error.message}")
        else:
            self.orders_refreshed += event.rows_affected

    def on_list_reconciled(self, event: ListReconciledEvent) -> None:
        self.pages.append(event)

    def on_list_partition_changed(self, partition_key: ListPartitionKey) -> None:
        self.invalidated_partitions.add(str(partition_key))

    @property
    def remote_ids(self) -> list[int]:
        return [remote_id for page in self.pages for remote_id in page.remote_ids]

    @property
    def list_errors(self) -> list[str]:
        return [page.error.message for page in self.pages if page.error is not None]


def perform_sync(
    engine: OrderSyncEngine,
    descriptor: RestOwnerListDescriptor,
    max_pages: int = 1,
    timeout: float | None = None,
) -> dict[str, Any]:
    """
    Synchronize up to max_pages pages of an order list.

    Args:
        engine: Engine to run the sync on
        descriptor: The list to synchronize
        max_pages: Maximum number of pages to fetch
        timeout: Optional limit in seconds for draining each page

    Returns:
        Dictionary with sync statistics
    """
    start_time = datetime.now()
    stats = SyncStats()
    engine.notifier.subscribe(stats.on_order_changed)
    engine.notifier.add_list_consumer(stats)

    log.info("order_sync_started", descriptor=descriptor.unique_key, max_pages=max_pages)

    offset = 0
    for _ in range(max_pages):
        pages_before = len(stats.pages)
        engine.fetch_order_list(descriptor, offset=offset)
        engine.run_until_idle(timeout=timeout)

        if len(stats.pages) == pages_before:
            break
        last_page = stats.pages[-1]
        if last_page.error is not None or not last_page.can_load_more:
            break
        offset += len(last_page.remote_ids)

    duration = (datetime.now() - start_time).total_seconds()
    result = {
        "success": not stats.list_errors and not stats.order_errors,
        "owner_id": descriptor.owner.local_id,
        "pages_fetched": len(stats.pages),
        "orders_listed": len(stats.remote_ids),
        "orders_refreshed": stats.orders_refreshed,
        "list_errors": stats.list_errors,
        "order_errors": stats.order_errors,
        "duration_seconds": duration,
    }
    log.info("order_sync_completed", **result)
    return result


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the sync command."""
    parser = argparse.ArgumentParser(description="Synchronize cached orders of one buyer")
    parser.add_argument("--config", type=str, default=None, help="Path to configuration file")
    parser.add_argument("--owner-id", type=int, required=True, help="Local buyer ID")
    parser.add_argument("--owner-remote-id", type=int, required=True, help="Remote buyer ID")
    parser.add_argument("--pages", type=int, default=1, help="Maximum number of pages to fetch")
    parser.add_argument(
        "--order-by", choices=[o.value for o in ListOrderBy], default=ListOrderBy.DATE.value
    )
    parser.add_argument(
        "--order", choices=[o.value for o in ListOrder], default=ListOrder.DESC.value
    )
    args = parser.parse_args(argv)

    try:
        loader = ConfigLoader()
        config: AppConfig = loader.load_config(args.config)
        loader.validate_config(config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    configure_logging(config.logging)

    descriptor = RestOwnerListDescriptor(
        owner=Owner(local_id=args.owner_id, remote_id=args.owner_remote_id),
        order_by=ListOrderBy(args.order_by),
        order=ListOrder(args.order),
        page_size=config.remote.page_size,
    )

    try:
        engine = build_engine(config)
    except (ValueError, RuntimeError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    with engine, structlog.contextvars.bound_contextvars(owner_id=args.owner_id):
        stats = perform_sync(engine, descriptor, max_pages=args.pages)

    print("\n" + "=" * 60)
    print("ORDER SYNC SUMMARY")
    print("=" * 60)
    print(f"Status: {'SUCCESS' if stats['success'] else 'FAILED'}")
    print(f"Owner: {stats['owner_id']}")
    print(f"Pages Fetched: {stats['pages_fetched']}")
    print(f"Orders Listed: {stats['orders_listed']}")
    print(f"Orders Refreshed: {stats['orders_refreshed']}")
    for error in stats["list_errors"] + stats["order_errors"]:
        print(f"Error: {error}")
    print(f"Duration: {stats['duration_seconds']:.2f} seconds")
    print("=" * 60)

    sys.exit(0 if stats["success"] else 1)


if __name__ == "__main__":
    main()
