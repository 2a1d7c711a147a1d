"""Tests for the provider factory functions.

Feature: order-sync
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ordersync.models.config import AppConfig, RemoteConfig, StoreConfig, WorkerConfig
from ordersync.providers import build_engine, get_order_store, get_remote_source
from ordersync.remote.rest_client import OrderRestClient
from ordersync.storage.order_store import InMemoryOrderStore, SqliteOrderStore
from ordersync.sync.engine import OrderSyncEngine


def remote_config(token: str = "token") -> RemoteConfig:
    return RemoteConfig(base_url="https://orders.example.com", auth_token=token)


def test_remote_source_is_rest_client() -> None:
    assert isinstance(get_remote_source(remote_config()), OrderRestClient)


@given(st.text(alphabet=" \t\n", max_size=5))
def test_blank_auth_token_is_rejected(token: str) -> None:
    with pytest.raises(ValueError, match="auth_token"):
        get_remote_source(remote_config(token))


def test_memory_store() -> None:
    assert isinstance(get_order_store(StoreConfig(type="memory")), InMemoryOrderStore)


def test_sqlite_store(tmp_path) -> None:
    store = get_order_store(StoreConfig(type="sqlite", path=str(tmp_path / "orders.db")))

    assert isinstance(store, SqliteOrderStore)
    assert (tmp_path / "orders.db").exists()
    store.close()


def test_build_engine_from_config() -> None:
    config = AppConfig(
        remote=remote_config(),
        store=StoreConfig(type="memory"),
        worker=WorkerConfig(max_remote_workers=2, drop_superseded_pages=True),
    )

    with build_engine(config) as engine:
        assert isinstance(engine, OrderSyncEngine)
        assert engine.run_until_idle(timeout=1) == 0


def test_sqlite_store_under_a_file_is_a_runtime_error(tmp_path) -> None:
    blocker = tmp_path / "orders"
    blocker.write_text("")

    with pytest.raises(RuntimeError, match="order database"):
        get_order_store(StoreConfig(type="sqlite", path=str(blocker / "orders.db")))
