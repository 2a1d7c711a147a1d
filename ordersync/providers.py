"""Centralized provider module for the sync engine's collaborators.

This module provides factory functions for the remote source and the order
store. Developers can modify these functions to swap implementations without
changing other code.

Default implementations:
- RemoteSource: OrderRestClient (requests over HTTPS)
- OrderStore: SqliteOrderStore (local file, no external services required)
"""

import structlog

from ordersync.models.config import AppConfig, RemoteConfig, StoreConfig
from ordersync.remote.rest_client import OrderRestClient
from ordersync.storage.order_store import InMemoryOrderStore, OrderStore, SqliteOrderStore
from ordersync.sync.change_notifier import ChangeNotifier
from ordersync.sync.engine import OrderSyncEngine, SyncDependencies
from ordersync.sync.interfaces import RemoteSource

log = structlog.stdlib.get_logger()


def get_remote_source(config: RemoteConfig) -> RemoteSource:
    """Get the configured remote order source.

    Args:
        config: Remote API configuration

    Returns:
        RemoteSource instance

    Raises:
        ValueError: If the auth token is empty
    """
    if not config.auth_token or not config.auth_token.strip():
        error_msg = "remote.auth_token cannot be empty"
        log.error("get_remote_source_failed", error=error_msg)
        raise ValueError(error_msg)

    log.info("initializing_remote_source", base_url=str(config.base_url), provider="REST")
    return OrderRestClient(
        base_url=str(config.base_url),
        auth_token=config.auth_token,
        timeout_seconds=config.timeout_seconds,
        retry=config.retry,
    )


def get_order_store(config: StoreConfig) -> OrderStore:
    """Get the configured order store.

    Args:
        config: Store configuration

    Returns:
        OrderStore instance

    Raises:
        RuntimeError: If the store cannot be opened
    """
    log.info("initializing_order_store", type=config.type, path=config.path)

    if config.type == "memory":
        return InMemoryOrderStore()
    return SqliteOrderStore(path=config.path)


def build_dependencies(config: AppConfig) -> SyncDependencies:
    """Construct the engine's collaborators from configuration."""
    return SyncDependencies(
        remote_source=get_remote_source(config.remote),
        order_store=get_order_store(config.store),
        notifier=ChangeNotifier(),
    )


def build_engine(
    config: AppConfig, dependencies: SyncDependencies | None = None
) -> OrderSyncEngine:
    """Construct a ready-to-use sync engine.

    Args:
        config: Application configuration
        dependencies: Optional prebuilt collaborators (built from config if None)

    Returns:
        OrderSyncEngine with every command handler registered
    """
    return OrderSyncEngine(
        dependencies=dependencies or build_dependencies(config),
        max_remote_workers=config.worker.max_remote_workers,
        drop_superseded_pages=config.worker.drop_superseded_pages,
    )
