# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Backend registry and construction from application settings.

Store modules are imported lazily so that optional client libraries are
only needed for the backend actually selected.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from stashkv.core.config import Settings, get_settings
from stashkv.core.exceptions import ConfigurationError
from stashkv.stores.base import Store
from stashkv.stores.config import StoreConfig, merge_config

logger = logging.getLogger("stashkv.stores.factory")

# backend name -> (module, store class)
BACKENDS: dict[str, tuple[str, str]] = {
    "memory": ("stashkv.stores.memory", "MemoryStore"),
    "sqlite": ("stashkv.stores.sqlite", "SQLiteStore"),
    "postgres": ("stashkv.stores.postgres", "PostgresStore"),
    "redis": ("stashkv.stores.redis", "RedisStore"),
    "cassandra": ("stashkv.stores.cassandra", "CassandraStore"),
    "mongodb": ("stashkv.stores.mongodb", "MongoDBStore"),
    "s3": ("stashkv.stores.s3", "S3Store"),
    "nats": ("stashkv.stores.nats", "NATSStore"),
    "surrealdb": ("stashkv.stores.surrealdb", "SurrealDBStore"),
}


def available_backends() -> list[str]:
    return sorted(BACKENDS)


def get_store_class(backend: str) -> type[Store]:
    """Return the :class:`Store` subclass registered under *backend*.

    Raises:
        ConfigurationError: If *backend* is not a known backend name.
    """
    name = backend.strip().lower()
    try:
        module_name, class_name = BACKENDS[name]
    except KeyError:
        msg = f"Unknown store backend {backend!r}; expected one of: " + ", ".join(
            available_backends()
        )
        raise ConfigurationError(msg) from None
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


async def open_store(
    backend: str,
    config: StoreConfig | None = None,
    **overrides: Any,
) -> Store:
    """Construct and bootstrap a store for *backend*."""
    store_cls = get_store_class(backend)
    return await store_cls.open(config, **overrides)


# ---------------------------------------------------------------------------
# Settings mapping
# ---------------------------------------------------------------------------


def _backend_fields(settings: Settings, backend: str) -> dict[str, Any]:
    if backend == "sqlite":
        return {"database": str(settings.sqlite_path)}
    if backend == "postgres":
        return {
            "dsn": settings.postgres_url,
            "pool_min": settings.postgres_pool_min,
            "pool_max": settings.postgres_pool_max,
        }
    if backend == "redis":
        return {"url": settings.redis_url}
    if backend == "cassandra":
        return {
            "hosts": settings.cassandra_hosts,
            "port": settings.cassandra_port,
            "consistency": settings.cassandra_consistency,
            "username": settings.cassandra_username,
            "password": settings.cassandra_password,
        }
    if backend == "mongodb":
        return {"url": settings.mongodb_url}
    if backend == "s3":
        return {
            "endpoint": settings.s3_endpoint,
            "region": settings.s3_region,
            "access_key": settings.s3_access_key,
            "secret_key": settings.s3_secret_key,
        }
    if backend == "nats":
        return {"urls": settings.nats_urls}
    if backend == "surrealdb":
        return {
            "url": settings.surrealdb_url,
            "database": settings.surrealdb_database,
            "username": settings.surrealdb_username,
            "password": settings.surrealdb_password,
        }
    return {}


def config_from_settings(settings: Settings, backend: str | None = None) -> StoreConfig:
    """Build the backend's config model from environment settings.

    Args:
        settings: Application settings.
        backend: Backend to build for; defaults to ``settings.backend``.
    """
    name = (backend or settings.backend).strip().lower()
    store_cls = get_store_class(name)

    fields: dict[str, Any] = {
        "table": settings.table,
        "expiration": settings.expiration,
        "reset": settings.reset,
    }
    if settings.namespace:
        fields["namespace"] = settings.namespace
    fields.update(_backend_fields(settings, name))
    return merge_config(store_cls.config_class(), **fields)


async def open_store_from_settings(
    settings: Settings | None = None,
    backend: str | None = None,
) -> Store:
    """Open the store selected by *settings* (environment by default)."""
    settings = settings or get_settings()
    name = (backend or settings.backend).strip().lower()
    config = config_from_settings(settings, name)
    logger.debug("Opening %s store from settings", name)
    return await open_store(name, config)
