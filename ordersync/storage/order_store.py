"""Local order cache interface and implementations."""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterable

import structlog

from ordersync.models.order import (
    ListOrder,
    ListOrderBy,
    LocalId,
    LocalOrRemoteId,
    OrderListDescriptor,
    OrderRecord,
    RemoteId,
)

log = structlog.stdlib.get_logger()


class OrderStore(ABC):
    """Abstract interface for the local order cache.

    Orders are owned by the store: it assigns local identifiers and is the
    only place records are created. The sync engine reads through the
    lookup methods and writes through overwrite_upsert().
    """

    @abstractmethod
    def insert_order(self, order: OrderRecord) -> OrderRecord:
        """Insert a new order and return it with its assigned local ID."""
        pass

    @abstractmethod
    def get_order_by_local_id(self, local_id: int) -> OrderRecord | None:
        pass

    @abstractmethod
    def list_orders_by_remote_ids(
        self, remote_ids: Iterable[int], owner_id: int
    ) -> list[OrderRecord]:
        """Return the cached orders of an owner whose remote ID is in remote_ids.

        Remote IDs with no cached order are absent from the result.
        """
        pass

    @abstractmethod
    def overwrite_upsert(self, order: OrderRecord) -> int:
        """Insert or update an order, replacing every field with the given values.

        The existing record is matched by local ID first, then by
        (remote ID, owner). Unsynced local edits are discarded.

        Returns:
            Number of rows written: 1, or 0 if the order cannot be identified
        """
        pass

    @abstractmethod
    def get_local_order_ids_for_descriptor(self, descriptor: OrderListDescriptor) -> list[LocalId]:
        """Return the local IDs of an owner's orders, sorted as the descriptor asks."""
        pass

    def get_orders_by_remote_ids(
        self, remote_ids: Iterable[int], owner_id: int
    ) -> dict[int, OrderRecord]:
        """Bulk lookup keyed by remote order ID, scoped to one owner."""
        orders = self.list_orders_by_remote_ids(list(remote_ids), owner_id)
        return {order.remote_id: order for order in orders if order.remote_id is not None}

    def get_orders_by_local_or_remote_ids(
        self, ids: Iterable[LocalOrRemoteId], owner_id: int
    ) -> list[OrderRecord]:
        """Look up orders by a mix of local and remote IDs, in the order given.

        IDs that match nothing, or match an order of another owner, are skipped.
        """
        ids = list(ids)
        by_remote = self.get_orders_by_remote_ids(
            [i.value for i in ids if isinstance(i, RemoteId)], owner_id
        )

        orders: list[OrderRecord] = []
        for identifier in ids:
            if isinstance(identifier, RemoteId):
                order = by_remote.get(identifier.value)
            else:
                order = self.get_order_by_local_id(identifier.value)
                if order is not None and order.local_owner_id != owner_id:
                    order = None
            if order is not None:
                orders.append(order)
        return orders


def _sort_key(order_by: ListOrderBy):
    if order_by == ListOrderBy.DATE:
        return lambda order: (order.date_created, order.local_id)
    return lambda order: order.local_id


class InMemoryOrderStore(OrderStore):
    """Dictionary-backed order cache, mostly useful for tests and dry runs."""

    def __init__(self) -> None:
        self._orders: dict[int, OrderRecord] = {}
        self._next_id = 1
        log.info("in_memory_order_store_initialized")

    def insert_order(self, order: OrderRecord) -> OrderRecord:
        stored = order.model_copy(update={"local_id": self._next_id}, deep=True)
        self._orders[stored.local_id] = stored
        self._next_id += 1
        log.debug("order_inserted", local_id=stored.local_id, remote_id=stored.remote_id)
        return stored.model_copy(deep=True)

    def get_order_by_local_id(self, local_id: int) -> OrderRecord | None:
        order = self._orders.get(local_id)
        return order.model_copy(deep=True) if order else None

    def list_orders_by_remote_ids(
        self, remote_ids: Iterable[int], owner_id: int
    ) -> list[OrderRecord]:
        wanted = set(remote_ids)
        return [
            order.model_copy(deep=True)
            for order in self._orders.values()
            if order.local_owner_id == owner_id and order.remote_id in wanted
        ]

    def overwrite_upsert(self, order: OrderRecord) -> int:
        existing = self._find_existing(order)
        if existing is None and order.remote_id is None:
            log.warning("order_upsert_unidentifiable", local_id=order.local_id)
            return 0

        if existing is None:
            self.insert_order(order.model_copy(update={"is_locally_changed": False}))
            return 1

        self._orders[existing.local_id] = order.model_copy(
            update={"local_id": existing.local_id, "is_locally_changed": False}, deep=True
        )
        log.debug("order_overwritten", local_id=existing.local_id, remote_id=order.remote_id)
        return 1

    def get_local_order_ids_for_descriptor(self, descriptor: OrderListDescriptor) -> list[LocalId]:
        orders = [o for o in self._orders.values() if o.local_owner_id == descriptor.owner.local_id]
        orders.sort(key=_sort_key(descriptor.order_by), reverse=descriptor.order == ListOrder.DESC)
        return [LocalId(value=o.local_id) for o in orders]

    def _find_existing(self, order: OrderRecord) -> OrderRecord | None:
        if order.local_id and order.local_id in self._orders:
            return self._orders[order.local_id]
        if order.remote_id is None:
            return None
        for candidate in self._orders.values():
            if (
                candidate.remote_id == order.remote_id
                and candidate.local_owner_id == order.local_owner_id
            ):
                return candidate
        return None


_COLUMNS = (
    "local_id",
    "remote_id",
    "local_owner_id",
    "last_modified",
    "status",
    "date_created",
    "item_title",
    "item_price",
    "item_quantity",
    "is_locally_changed",
    "extra",
)

_ORDER_COLUMNS = {
    ListOrderBy.DATE: "date_created",
    ListOrderBy.ID: "local_id",
}


class SqliteOrderStore(OrderStore):
    """SQLite implementation of the order cache."""

    def __init__(self, path: str = ":memory:"):
        """Open (and create if needed) the order database.

        Args:
            path: Database file path, or ":memory:" for a private in-memory database

        Raises:
            RuntimeError: If the database cannot be opened
        """
        try:
            if path != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            # Accessed from the command worker thread, serialized by _lock.
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._lock = threading.Lock()
            self._init_schema()
            log.info("sqlite_order_store_initialized", path=path)
        except (sqlite3.Error, OSError) as e:
            log.error("sqlite_order_store_initialization_failed", path=path, error=str(e))
            raise RuntimeError(f"Failed to open order database at {path}: {e}") from e

    @contextmanager
    def _cursor(self) -> Generator[sqlite3.Cursor, None, None]:
        with self._lock:
            cursor = self._conn.cursor()
            try:
                yield cursor
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cursor.close()

    def _init_schema(self) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    local_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    remote_id INTEGER,
                    local_owner_id INTEGER NOT NULL,
                    last_modified TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT '',
                    date_created TEXT NOT NULL DEFAULT '',
                    item_title TEXT NOT NULL DEFAULT '',
                    item_price TEXT NOT NULL DEFAULT '',
                    item_quantity INTEGER NOT NULL DEFAULT 0,
                    is_locally_changed INTEGER NOT NULL DEFAULT 0,
                    extra TEXT NOT NULL DEFAULT '{}'
                )
                """
            )
            cursor.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_orders_owner_remote "
                "ON orders(local_owner_id, remote_id)"
            )

    def close(self) -> None:
        self._conn.close()

    def insert_order(self, order: OrderRecord) -> OrderRecord:
        values = self._to_row(order)
        del values["local_id"]
        with self._cursor() as cursor:
            cursor.execute(
                f"INSERT INTO orders ({', '.join(values)}) "
                f"VALUES ({', '.join('?' for _ in values)})",
                tuple(values.values()),
            )
            local_id = cursor.lastrowid
        log.debug("order_inserted", local_id=local_id, remote_id=order.remote_id)
        return order.model_copy(update={"local_id": local_id}, deep=True)

    def get_order_by_local_id(self, local_id: int) -> OrderRecord | None:
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM orders WHERE local_id = ?", (local_id,)
            )
            row = cursor.fetchone()
        return self._from_row(row) if row else None

    def list_orders_by_remote_ids(
        self, remote_ids: Iterable[int], owner_id: int
    ) -> list[OrderRecord]:
        remote_ids = list(remote_ids)
        if not remote_ids:
            return []

        placeholders = ", ".join("?" for _ in remote_ids)
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM orders "
                f"WHERE local_owner_id = ? AND remote_id IN ({placeholders})",
                (owner_id, *remote_ids),
            )
            rows = cursor.fetchall()
        return [self._from_row(row) for row in rows]

    def overwrite_upsert(self, order: OrderRecord) -> int:
        values = self._to_row(order.model_copy(update={"is_locally_changed": False}))
        del values["local_id"]
        assignments = ", ".join(f"{column} = ?" for column in values)

        with self._cursor() as cursor:
            if order.local_id:
                cursor.execute(
                    f"UPDATE orders SET {assignments} WHERE local_id = ?",
                    (*values.values(), order.local_id),
                )
                if cursor.rowcount:
                    return cursor.rowcount

            if order.remote_id is None:
                log.warning("order_upsert_unidentifiable", local_id=order.local_id)
                return 0

            cursor.execute(
                f"UPDATE orders SET {assignments} WHERE remote_id = ? AND local_owner_id = ?",
                (*values.values(), order.remote_id, order.local_owner_id),
            )
            if cursor.rowcount:
                return cursor.rowcount

            cursor.execute(
                f"INSERT INTO orders ({', '.join(values)}) "
                f"VALUES ({', '.join('?' for _ in values)})",
                tuple(values.values()),
            )
            return cursor.rowcount

    def get_local_order_ids_for_descriptor(self, descriptor: OrderListDescriptor) -> list[LocalId]:
        column = _ORDER_COLUMNS[descriptor.order_by]
        direction = "ASC" if descriptor.order == ListOrder.ASC else "DESC"
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT local_id FROM orders WHERE local_owner_id = ? "
                f"ORDER BY {column} {direction}, local_id {direction}",
                (descriptor.owner.local_id,),
            )
            rows = cursor.fetchall()
        return [LocalId(value=row["local_id"]) for row in rows]

    @staticmethod
    def _to_row(order: OrderRecord) -> dict:
        row = order.model_dump()
        row["is_locally_changed"] = int(order.is_locally_changed)
        row["extra"] = json.dumps(order.extra)
        return {column: row[column] for column in _COLUMNS}

    @staticmethod
    def _from_row(row: sqlite3.Row) -> OrderRecord:
        data = dict(row)
        data["is_locally_changed"] = bool(data["is_locally_changed"])
        data["extra"] = json.loads(data["extra"] or "{}")
        return OrderRecord(**data)
