# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Expiring key-value stores, one module per backend."""

from stashkv.stores.base import Record, Store, StoreState
from stashkv.stores.config import StoreConfig, merge_config
from stashkv.stores.factory import (
    BACKENDS,
    available_backends,
    config_from_settings,
    get_store_class,
    open_store,
    open_store_from_settings,
)
from stashkv.stores.memory import MemoryConfig, MemoryStore
from stashkv.stores.sqlite import SQLiteConfig, SQLiteStore

__all__ = [
    "BACKENDS",
    "MemoryConfig",
    "MemoryStore",
    "Record",
    "SQLiteConfig",
    "SQLiteStore",
    "Store",
    "StoreConfig",
    "StoreState",
    "available_backends",
    "config_from_settings",
    "get_store_class",
    "merge_config",
    "open_store",
    "open_store_from_settings",
]
