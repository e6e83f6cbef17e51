# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Redis store using the ``redis`` asyncio client.

Redis expires keys natively and never returns an expired key, so writes
use ``PX`` and reads need no stored timestamp.  Keys live under the
prefix ``<namespace>:<table>:``; reset and list walk that prefix with
``SCAN`` rather than ``KEYS``.

This backend is optional: without the ``redis`` package the module still
imports, but :class:`RedisStore` raises a clear error at construction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from stashkv.core.exceptions import ConfigurationError
from stashkv.core.expiry import Expiry
from stashkv.stores.base import Record, Store, as_bytes
from stashkv.stores.config import StoreConfig

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger("stashkv.stores.redis")

try:
    import redis.asyncio as aioredis

    _REDIS_AVAILABLE = True
except ImportError:  # pragma: no cover
    aioredis = None  # type: ignore[assignment]
    _REDIS_AVAILABLE = False


def redis_available() -> bool:
    """Return ``True`` if the ``redis`` package is installed."""
    return _REDIS_AVAILABLE


class RedisConfig(StoreConfig):
    """Redis store settings.

    Attributes:
        url: Connection URL (``redis://localhost:6379/0``).
        scan_count: ``COUNT`` hint for ``SCAN`` during list/reset.
    """

    url: str = "redis://localhost:6379/0"
    scan_count: int = 500


class RedisStore(Store):
    """Redis-backed store relying on native key expiry."""

    backend_name = "redis"
    config_class = RedisConfig
    native_ttl = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if not _REDIS_AVAILABLE:
            raise ConfigurationError(
                "The 'redis' package is required for the Redis store. "
                "Install it with: pip install 'stashkv[redis]'"
            )
        super().__init__(*args, **kwargs)
        self._client: Redis | None = None
        self._prefix = f"{self._namespace}:{self._table}:"

    @property
    def conn(self) -> Redis | None:
        return self._client

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        config: RedisConfig = self._config  # type: ignore[assignment]
        with self._step("connect"):
            self._client = aioredis.from_url(config.url, **config.options)
            await self._client.ping()
        if config.reset:
            with self._step("reset"):
                count = await self._delete_prefixed()
            logger.info("Reset Redis prefix %s (%d keys removed)", self._prefix, count)

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        client = self._require_client()
        if expiry.never:
            await client.set(self._prefixed(key), value)
        else:
            await client.set(self._prefixed(key), value, px=expiry.native_ttl_ms)

    async def _read(self, key: str) -> Record | None:
        result = await self._require_client().get(self._prefixed(key))
        if result is None:
            return None
        return Record(key=key, value=as_bytes(result))

    async def _remove(self, key: str) -> None:
        await self._require_client().delete(self._prefixed(key))

    async def _truncate(self) -> None:
        await self._delete_prefixed()

    async def _scan(self, now: datetime) -> list[Record]:
        client = self._require_client()
        config: RedisConfig = self._config  # type: ignore[assignment]
        keys = [
            k async for k in client.scan_iter(match=f"{self._prefix}*", count=config.scan_count)
        ]
        if not keys:
            return []
        values = await client.mget(keys)
        records: list[Record] = []
        for raw_key, value in zip(keys, values, strict=True):
            # a key can expire between SCAN and MGET
            if value is None:
                continue
            name = raw_key.decode() if isinstance(raw_key, bytes) else raw_key
            records.append(Record(key=name[len(self._prefix):], value=as_bytes(value)))
        return records

    async def _release(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_client(self) -> Redis:
        if self._client is None:
            msg = "redis store has no open session"
            raise RuntimeError(msg)
        return self._client

    def _prefixed(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _delete_prefixed(self) -> int:
        """Delete all keys under this store's prefix.

        Uses SCAN to avoid blocking Redis with a KEYS command.
        """
        client = self._require_client()
        count = 0
        async for key in client.scan_iter(match=f"{self._prefix}*"):
            await client.delete(key)
            count += 1
        return count
