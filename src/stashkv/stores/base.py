# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Abstract store interface with TTL reconciliation and lazy reaping.

Every backend implements the same observable contract:

* ``set`` writes key/value/expiry as one record (last write wins).
* ``get`` returns ``None`` for missing, deleted or expired keys.  An
  expired record that the backend has not reaped yet is reported absent
  and a best-effort delete for it is scheduled in the background.
* ``delete`` and ``reset`` are idempotent.
* ``list`` returns only live entries.

Subclasses implement the underscore-prefixed primitives; the public
methods here own state checks, expiry resolution and error wrapping.
"""

from __future__ import annotations

import abc
import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar, Self

from stashkv.core.exceptions import (
    BackendError,
    BootstrapError,
    StashError,
    StoreStateError,
)
from stashkv.core.expiry import Expiry, TTLValue, default_ttl, is_expired, resolve_expiry, utcnow
from stashkv.core.identifiers import validate_identifier
from stashkv.stores.config import StoreConfig, merge_config

logger = logging.getLogger("stashkv.stores")

Clock = Callable[[], datetime]


class StoreState(StrEnum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Record:
    """A stored entry as read back from a backend."""

    key: str
    value: bytes
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return is_expired(self.expires_at, now)


def as_bytes(value: bytes | bytearray | memoryview | str) -> bytes:
    """Coerce a value to ``bytes``; ``str`` is encoded as UTF-8."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    msg = f"value must be bytes or str, not {type(value).__name__}"
    raise TypeError(msg)


class Store(abc.ABC):
    """Base class for expiring key-value stores.

    Construct with :meth:`open`, which validates identifiers, merges the
    configuration and bootstraps the schema.  A store whose bootstrap
    fails is never returned.

    Args:
        config: Backend config; unset fields fall back to the backend's
            defaults.
        clock: Returns the current UTC instant.  Tests inject a fake one.
        **overrides: Individual config fields, applied last.
    """

    backend_name: ClassVar[str]
    config_class: ClassVar[type[StoreConfig]]
    native_ttl: ClassVar[bool] = False

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        clock: Clock = utcnow,
        **overrides: Any,
    ) -> None:
        self._config = merge_config(self.config_class(), config, **overrides)
        self._namespace = validate_identifier(self._config.namespace, "namespace")
        self._table = validate_identifier(self._config.table, "table")
        self._default_ttl = default_ttl(self._config.expiration)
        self._clock = clock
        self._state = StoreState.UNINITIALIZED
        self._reaps: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Construction / lifecycle
    # ------------------------------------------------------------------

    @classmethod
    async def open(
        cls,
        config: StoreConfig | None = None,
        *,
        clock: Clock = utcnow,
        **overrides: Any,
    ) -> Self:
        """Create a store and bootstrap its namespace and table.

        Raises:
            InvalidIdentifierError: Before any connection is made.
            BootstrapError: If any bootstrap step fails.
        """
        store = cls(config, clock=clock, **overrides)
        await store.bootstrap()
        return store

    async def bootstrap(self) -> None:
        """Run the schema bootstrap and move the store to ``READY``."""
        if self._state is not StoreState.UNINITIALIZED:
            msg = f"cannot bootstrap a store in state {self._state}"
            raise StoreStateError(msg)

        self._state = StoreState.BOOTSTRAPPING
        try:
            await self._bootstrap()
        except Exception as exc:
            self._state = StoreState.FAILED
            await self._abort()
            if isinstance(exc, BootstrapError):
                raise
            raise BootstrapError("bootstrap", self._namespace, exc) from exc

        self._state = StoreState.READY
        logger.info("%s store ready", self.backend_name, extra=self._log_context)

    async def close(self) -> None:
        """Wait for pending lazy deletes and release the backend session."""
        if self._state is StoreState.CLOSED:
            return
        await self._drain_reaps()
        self._state = StoreState.CLOSED
        try:
            await self._release()
        except Exception as exc:
            raise BackendError("close", cause=exc) from exc

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: bytes | bytearray | memoryview | str,
        ttl: TTLValue = 0,
    ) -> None:
        """Store *value* under *key*.

        Args:
            key: Caller-chosen identifier.
            value: Payload; ``str`` is stored UTF-8 encoded.
            ttl: Seconds or ``timedelta``.  ``0`` applies the store
                default, negative stores indefinitely.
        """
        self._ensure_ready()
        self._check_key(key)
        data = as_bytes(value)
        expiry = resolve_expiry(ttl, self._default_ttl, self._clock())
        with self._wrap("set", key):
            await self._write(key, data, expiry)

    async def get(self, key: str) -> bytes | None:
        """Return the live value for *key*, or ``None``."""
        self._ensure_ready()
        self._check_key(key)
        with self._wrap("get", key):
            record = await self._read(key)
        if record is None:
            return None
        if record.is_expired(self._clock()):
            self._schedule_reap(key)
            return None
        return record.value

    async def delete(self, key: str) -> None:
        """Remove *key*; removing an absent key is not an error."""
        self._ensure_ready()
        self._check_key(key)
        with self._wrap("delete", key):
            await self._remove(key)

    async def reset(self) -> None:
        """Remove every record while keeping the schema."""
        self._ensure_ready()
        with self._wrap("reset"):
            await self._truncate()

    async def list(self) -> dict[str, bytes]:
        """Return all live entries as a ``key -> value`` mapping."""
        self._ensure_ready()
        now = self._clock()
        with self._wrap("list"):
            records = await self._scan(now)
        return {r.key: r.value for r in records if not r.is_expired(now)}

    @property
    @abc.abstractmethod
    def conn(self) -> Any:
        """Return the raw backend session (escape hatch)."""

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def table(self) -> str:
        return self._table

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def describe(self) -> dict[str, object]:
        return {
            "backend": self.backend_name,
            "namespace": self._namespace,
            "table": self._table,
            "native_ttl": self.native_ttl,
            "default_ttl": self._default_ttl,
            "state": str(self._state),
        }

    @property
    def _log_context(self) -> dict[str, str]:
        return {"backend": self.backend_name, "namespace": self._namespace, "table": self._table}

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _bootstrap(self) -> None:
        """Ensure namespace and data object exist; honour ``config.reset``."""

    @abc.abstractmethod
    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        """Upsert one record, applying a native TTL where supported."""

    @abc.abstractmethod
    async def _read(self, key: str) -> Record | None:
        """Fetch one record regardless of expiry, or ``None``."""

    @abc.abstractmethod
    async def _remove(self, key: str) -> None:
        """Delete one record; absent keys are fine."""

    @abc.abstractmethod
    async def _truncate(self) -> None:
        """Delete every record in the store's table."""

    @abc.abstractmethod
    async def _scan(self, now: datetime) -> Iterable[Record]:
        """Return records, optionally pre-filtered for expiry at *now*."""

    @abc.abstractmethod
    async def _release(self) -> None:
        """Close sessions.  Must tolerate a partially bootstrapped store."""

    async def _remove_expired(self, key: str, now: datetime) -> None:
        """Delete *key* as a lazy reap.

        Backends that can delete conditionally override this so a value
        written after the expired read is not removed.
        """
        await self._remove(key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_ready(self) -> None:
        if self._state is not StoreState.READY:
            msg = f"{self.backend_name} store is {self._state}; operations require an open store"
            raise StoreStateError(msg)

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            msg = "key must be a non-empty string"
            raise ValueError(msg)

    @contextlib.contextmanager
    def _wrap(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Re-raise backend client failures as :class:`BackendError`."""
        try:
            yield
        except StashError:
            raise
        except Exception as exc:
            raise BackendError(operation, key, exc) from exc

    @contextlib.contextmanager
    def _step(self, step: str) -> Iterator[None]:
        """Attribute a bootstrap failure to *step*."""
        try:
            yield
        except BootstrapError:
            raise
        except Exception as exc:
            raise BootstrapError(step, self._namespace, exc) from exc

    def _schedule_reap(self, key: str) -> None:
        task = asyncio.create_task(self._reap(key))
        self._reaps.add(task)
        task.add_done_callback(self._reaps.discard)

    async def _reap(self, key: str) -> None:
        try:
            await self._remove_expired(key, self._clock())
        except Exception as exc:
            logger.warning(
                "Failed to delete expired key %s: %s", key, exc, extra=self._log_context
            )
        else:
            logger.debug("Lazily deleted expired key %s", key, extra=self._log_context)

    async def _drain_reaps(self) -> None:
        """Wait for all scheduled lazy deletes to finish."""
        while self._reaps:
            await asyncio.gather(*self._reaps, return_exceptions=True)

    async def _abort(self) -> None:
        try:
            await self._release()
        except Exception as exc:
            logger.warning(
                "Failed to release %s session after bootstrap failure: %s",
                self.backend_name,
                exc,
                extra=self._log_context,
            )
