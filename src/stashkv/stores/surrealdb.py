# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SurrealDB store (``surrealdb`` async SDK).

The store namespace is a SurrealDB namespace and ``database`` selects the
database inside it.  Each entry is the record ``<table>:⟨key⟩`` with
fields ``key``, ``value`` (bytes) and ``expires_at`` (Unix epoch seconds,
or NONE).  SurrealDB has no record TTL, so reads and lists compare
``expires_at`` with the current instant and lazy deletes are conditional.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from stashkv.core.exceptions import ConfigurationError
from stashkv.core.expiry import Expiry, from_epoch, to_epoch
from stashkv.core.identifiers import validate_identifier
from stashkv.stores.base import Record, Store, as_bytes
from stashkv.stores.config import StoreConfig

logger = logging.getLogger("stashkv.stores.surrealdb")

try:
    from surrealdb import AsyncSurreal

    _SURREALDB_AVAILABLE = True
except ImportError:  # pragma: no cover
    AsyncSurreal = None  # type: ignore[assignment,misc]
    _SURREALDB_AVAILABLE = False

_RECORD = "type::thing($tb, $key)"


def surrealdb_available() -> bool:
    """Return ``True`` if the ``surrealdb`` SDK is installed."""
    return _SURREALDB_AVAILABLE


class SurrealQueryError(RuntimeError):
    """A SurrealQL statement came back with a non-OK status."""


class SurrealDBConfig(StoreConfig):
    """SurrealDB store settings.

    Attributes:
        url: RPC endpoint (``ws://host:8000/rpc`` or ``http://host:8000``).
        database: Database inside the namespace.
        username: Root or namespace user; empty skips sign-in.
        password: Password for ``username``.
    """

    url: str = "ws://127.0.0.1:8000/rpc"
    database: str = "stashkv"
    username: str = ""
    password: str = ""


class SurrealDBStore(Store):
    """Multi-model store keeping one SurrealDB record per key."""

    backend_name = "surrealdb"
    config_class = SurrealDBConfig

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if not _SURREALDB_AVAILABLE:
            raise ConfigurationError(
                "The 'surrealdb' package is required for the SurrealDB store. "
                "Install it with: pip install 'stashkv[surrealdb]'"
            )
        super().__init__(*args, **kwargs)
        config: SurrealDBConfig = self._config  # type: ignore[assignment]
        self._database = validate_identifier(config.database, "database")
        self._db: Any = None

    @property
    def conn(self) -> Any:
        """Return the SurrealDB connection."""
        return self._db

    @property
    def database(self) -> str:
        return self._database

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        config: SurrealDBConfig = self._config  # type: ignore[assignment]

        with self._step("connect"):
            self._db = AsyncSurreal(config.url, **config.options)
            await self._db.connect()
            if config.username:
                await self._db.signin(
                    {"username": config.username, "password": config.password}
                )

        with self._step("ensure namespace"):
            await self._query(f"DEFINE NAMESPACE IF NOT EXISTS {self._namespace}")
            await self._db.use(self._namespace, self._database)
            await self._query(f"DEFINE DATABASE IF NOT EXISTS {self._database}")

        if config.reset:
            with self._step("remove table"):
                await self._query(f"REMOVE TABLE IF EXISTS {self._table}")
            logger.info("Removed table %s for reset", self._table)

        with self._step("define table"):
            await self._query(f"DEFINE TABLE IF NOT EXISTS {self._table} SCHEMALESS")
            await self._query(
                f"DEFINE INDEX IF NOT EXISTS {self._table}_expires_at "
                f"ON TABLE {self._table} FIELDS expires_at"
            )

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        content: dict[str, Any] = {"key": key, "value": value}
        if expiry.expires_at is not None:
            content["expires_at"] = to_epoch(expiry.expires_at)
        # CONTENT replaces the whole record, dropping a previous expires_at
        await self._query(
            f"UPSERT {_RECORD} CONTENT $content RETURN NONE",
            {"tb": self._table, "key": key, "content": content},
        )

    async def _read(self, key: str) -> Record | None:
        rows = await self._query(
            f"SELECT key, value, expires_at FROM {_RECORD}",
            {"tb": self._table, "key": key},
        )
        if not rows:
            return None
        return self._row_to_record(rows[0])

    async def _remove(self, key: str) -> None:
        await self._query(
            f"DELETE {_RECORD} RETURN NONE", {"tb": self._table, "key": key}
        )

    async def _remove_expired(self, key: str, now: datetime) -> None:
        await self._query(
            f"DELETE {_RECORD} WHERE expires_at != NONE AND expires_at <= $now RETURN NONE",
            {"tb": self._table, "key": key, "now": to_epoch(now)},
        )

    async def _truncate(self) -> None:
        await self._query("DELETE type::table($tb) RETURN NONE", {"tb": self._table})

    async def _scan(self, now: datetime) -> list[Record]:
        rows = await self._query(
            "SELECT key, value, expires_at FROM type::table($tb) "
            "WHERE expires_at = NONE OR expires_at > $now",
            {"tb": self._table, "now": to_epoch(now)},
        )
        return [self._row_to_record(row) for row in rows or []]

    async def _release(self) -> None:
        db, self._db = self._db, None
        if db is not None:
            await db.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _query(self, sql: str, params: dict[str, Any] | None = None) -> Any:
        """Run one statement and return its result, raising on a failed status."""
        if self._db is None:
            msg = "surrealdb store has no open session"
            raise RuntimeError(msg)
        response = await self._db.query_raw(sql, params or {})
        if response.get("error"):
            raise SurrealQueryError(str(response["error"]))
        results = response.get("result") or []
        for result in results:
            if result.get("status") != "OK":
                raise SurrealQueryError(str(result.get("result")))
        return results[-1].get("result") if results else None

    @staticmethod
    def _row_to_record(row: dict[str, Any]) -> Record:
        return Record(
            key=row["key"],
            value=as_bytes(row.get("value") or b""),
            expires_at=from_epoch(row.get("expires_at")),
        )
