"""Local order cache implementations"""

from ordersync.storage.order_store import InMemoryOrderStore, OrderStore, SqliteOrderStore

__all__ = ["InMemoryOrderStore", "OrderStore", "SqliteOrderStore"]
