# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Embedded SQLite store (aiosqlite).

SQLite has no native expiry, so ``expires_at`` is stored as REAL Unix
epoch seconds and every read and list is checked against it.

The namespace is the SQLite schema name.  ``main`` (the default) is the
database file itself; any other namespace is created by attaching a
sibling database file ``<namespace>.db`` next to it (or another
in-memory database when the main database is ``:memory:``).
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from stashkv.core.expiry import from_epoch, to_epoch
from stashkv.sql.sqlite import SQLiteSession
from stashkv.stores.config import StoreConfig
from stashkv.stores.sql import SQLStore

logger = logging.getLogger("stashkv.stores.sqlite")

_MEMORY = ":memory:"


class SQLiteConfig(StoreConfig):
    """SQLite store settings.

    Attributes:
        database: Path of the database file, or ``:memory:``.
    """

    database: str = "stashkv.db"
    namespace: str = "main"


class SQLiteStore(SQLStore):
    """Expiring key-value store in a single SQLite table."""

    backend_name = "sqlite"
    config_class = SQLiteConfig

    _blob_type = "BLOB"
    _timestamp_type = "REAL"

    async def _open_session(self) -> None:
        config: SQLiteConfig = self._config  # type: ignore[assignment]

        with self._step("connect"):
            self._db = await SQLiteSession.connect(config.database, **config.options)

        with self._step("ensure namespace"):
            rows = await self._db.fetch_all("PRAGMA database_list")
            attached = {row["name"] for row in rows}
            if self._namespace not in attached:
                path = self._namespace_path(config.database)
                await self._db.execute(f"ATTACH DATABASE ? AS {self._namespace}", (path,))
                logger.info("Attached SQLite namespace %s at %s", self._namespace, path)

    def _namespace_path(self, database: str) -> str:
        if database == _MEMORY or not database:
            return _MEMORY
        return str(Path(database).with_name(f"{self._namespace}.db"))

    def _create_index_sql(self) -> str:
        # SQLite qualifies the index name; the table must be in the same schema.
        return (
            f"CREATE INDEX IF NOT EXISTS {self._namespace}.{self._table}_expires_at_idx "
            f"ON {self._table} (expires_at)"
        )

    def _encode_ts(self, moment: datetime | None) -> Any:
        return to_epoch(moment)

    def _decode_ts(self, value: Any) -> datetime | None:
        return from_epoch(value)
