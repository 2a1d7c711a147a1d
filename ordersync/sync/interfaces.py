"""Interfaces of the collaborators the sync engine calls out to."""

from typing import Protocol

from ordersync.models.order import OrderListDescriptor, OrderRecord, Owner
from ordersync.sync.models import FetchOrderListResponse, FetchOrderResponse


class RemoteSource(Protocol):
    """Remote source of truth for orders.

    Both calls block and are run off the command consumer. Failures are
    reported through the response's error field, not raised.
    """

    def fetch_order_list(
        self, descriptor: OrderListDescriptor, offset: int
    ) -> FetchOrderListResponse:
        ...

    def fetch_order(self, order: OrderRecord, owner: Owner) -> FetchOrderResponse:
        ...
