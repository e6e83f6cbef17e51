# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""stashkv - Expiring key-value storage adapters over many backends."""

__version__ = "0.1.0"

from stashkv.core.exceptions import (
    BackendError,
    BootstrapError,
    ConfigurationError,
    InvalidIdentifierError,
    StashError,
    StoreStateError,
)
from stashkv.stores import (
    Store,
    StoreConfig,
    StoreState,
    open_store,
    open_store_from_settings,
)

__all__ = [
    "BackendError",
    "BootstrapError",
    "ConfigurationError",
    "InvalidIdentifierError",
    "StashError",
    "Store",
    "StoreConfig",
    "StoreState",
    "StoreStateError",
    "__version__",
    "open_store",
    "open_store_from_settings",
]
