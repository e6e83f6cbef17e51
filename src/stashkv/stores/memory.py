# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""In-process store with per-entry expiry timestamps.

Requires no external services.  Nothing reaps entries in the background:
expired entries are dropped when a read or list observes them, which
makes this store the reference implementation of the lazy-expiry rules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from stashkv.core.expiry import Expiry
from stashkv.stores.base import Record, Store
from stashkv.stores.config import StoreConfig


class MemoryConfig(StoreConfig):
    """In-memory store settings (namespace and table are labels only)."""


class MemoryStore(Store):
    """Dictionary-backed store owned by a single instance."""

    backend_name = "memory"
    config_class = MemoryConfig

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._data: dict[str, Record] | None = None

    @property
    def conn(self) -> dict[str, Record] | None:
        return self._data

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        self._data = {}

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        self._entries()[key] = Record(key=key, value=value, expires_at=expiry.expires_at)

    async def _read(self, key: str) -> Record | None:
        return self._entries().get(key)

    async def _remove(self, key: str) -> None:
        self._entries().pop(key, None)

    async def _remove_expired(self, key: str, now: datetime) -> None:
        entries = self._entries()
        record = entries.get(key)
        if record is not None and record.is_expired(now):
            del entries[key]

    async def _truncate(self) -> None:
        self._entries().clear()

    async def _scan(self, now: datetime) -> list[Record]:
        self._prune_expired(now)
        return list(self._entries().values())

    async def _release(self) -> None:
        if self._data is not None:
            self._data.clear()
            self._data = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _entries(self) -> dict[str, Record]:
        if self._data is None:
            msg = "memory store has no open session"
            raise RuntimeError(msg)
        return self._data

    def _prune_expired(self, now: datetime) -> None:
        """Remove all expired entries."""
        entries = self._entries()
        expired_keys = [k for k, v in entries.items() if v.is_expired(now)]
        for k in expired_keys:
            del entries[k]
