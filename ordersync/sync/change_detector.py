"""Change detection for identifying stale locally cached orders."""

import structlog

from ordersync.models.order import OrderListItem, OrderRecord

log = structlog.stdlib.get_logger()


def is_stale(local: OrderRecord, remote: OrderListItem) -> bool:
    """Return True if the local record's fingerprint differs from the remote summary.

    The fingerprint is the (last_modified, status) pair. Differences in any
    other field are not visible here.
    """
    return local.last_modified != remote.last_modified or local.status != remote.status


class ChangeDetector:
    """Detects which cached orders are out of date with a page of remote summaries."""

    def is_stale(self, local: OrderRecord, remote: OrderListItem) -> bool:
        """
        Compare one cached order against its remote summary.

        Args:
            local: Order as held in the local cache
            remote: Summary of the same order from the list endpoint

        Returns:
            True if the order must be fetched again, False otherwise
        """
        stale = is_stale(local, remote)

        if stale:
            log.debug(
                "stale_order_detected",
                remote_order_id=remote.remote_order_id,
                local_last_modified=local.last_modified,
                remote_last_modified=remote.last_modified,
                local_status=local.status,
                remote_status=remote.status,
            )

        return stale

    def find_stale(
        self,
        items: list[OrderListItem],
        local_orders: dict[int, OrderRecord],
    ) -> list[tuple[OrderListItem, OrderRecord]]:
        """
        Find the orders of a list page that need a full fetch.

        Items with no cached counterpart are skipped: only orders that already
        exist locally are ever refreshed.

        Args:
            items: Remote summaries, in page order
            local_orders: Cached orders keyed by remote order ID

        Returns:
            (summary, cached order) pairs for every stale order, in page order
        """
        stale: list[tuple[OrderListItem, OrderRecord]] = []
        skipped = 0

        for item in items:
            order = local_orders.get(item.remote_order_id)
            if order is None:
                skipped += 1
                continue

            if self.is_stale(order, item):
                stale.append((item, order))

        log.info(
            "stale_orders_detected",
            page_size=len(items),
            stale=len(stale),
            not_cached=skipped,
        )
        return stale
