"""Remote order source implementations"""

from ordersync.remote.rest_client import OrderRestClient

__all__ = ["OrderRestClient"]
