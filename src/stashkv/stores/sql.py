# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Shared implementation for the stores backed by a SQL session.

Neither SQLite nor PostgreSQL expires rows on its own, so every record
carries an ``expires_at`` column that is checked on read, filtered on
list, and used to make lazy deletes conditional.  Statements are written
once with ``?`` placeholders; the PostgreSQL session rewrites them.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Any

from stashkv.core.expiry import Expiry
from stashkv.sql.session import SQLSession
from stashkv.stores.base import Record, Store

logger = logging.getLogger("stashkv.stores.sql")


class SQLStore(Store):
    """Store persisting ``(key, value, expires_at)`` rows in one table."""

    _blob_type = "BLOB"
    _timestamp_type = "REAL"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._db: SQLSession | None = None

    @property
    def conn(self) -> SQLSession | None:
        return self._db

    @property
    def qualified_table(self) -> str:
        return f"{self._namespace}.{self._table}"

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _open_session(self) -> None:
        """Ensure the namespace exists and set ``self._db`` scoped to it."""

    @abc.abstractmethod
    def _encode_ts(self, moment: datetime | None) -> Any:
        """Convert an aware datetime to the column representation."""

    @abc.abstractmethod
    def _decode_ts(self, value: Any) -> datetime | None:
        """Convert a column value back to an aware datetime."""

    @abc.abstractmethod
    def _create_index_sql(self) -> str:
        """Return DDL for the index on ``expires_at``."""

    async def _clear_rows(self, db: SQLSession) -> None:
        await db.execute(f"DELETE FROM {self.qualified_table}")

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        await self._open_session()
        db = self._require_db()

        if self._config.reset:
            with self._step("drop table"):
                await db.execute(f"DROP TABLE IF EXISTS {self.qualified_table}")
                await db.commit()
            logger.info("Dropped table %s for reset", self.qualified_table)

        with self._step("create table"):
            await db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.qualified_table} (
                    key TEXT PRIMARY KEY,
                    value {self._blob_type} NOT NULL,
                    expires_at {self._timestamp_type}
                )
                """
            )
            await db.execute(self._create_index_sql())
            await db.commit()

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        db = self._require_db()
        await db.execute(
            f"""
            INSERT INTO {self.qualified_table} (key, value, expires_at)
            VALUES (?, ?, ?)
            ON CONFLICT (key) DO UPDATE
            SET value = excluded.value, expires_at = excluded.expires_at
            """,
            (key, value, self._encode_ts(expiry.expires_at)),
        )
        await db.commit()

    async def _read(self, key: str) -> Record | None:
        row = await self._require_db().fetch_one(
            f"SELECT key, value, expires_at FROM {self.qualified_table} WHERE key = ?",
            (key,),
        )
        if row is None:
            return None
        return self._row_to_record(row)

    async def _remove(self, key: str) -> None:
        db = self._require_db()
        await db.execute(f"DELETE FROM {self.qualified_table} WHERE key = ?", (key,))
        await db.commit()

    async def _remove_expired(self, key: str, now: datetime) -> None:
        db = self._require_db()
        await db.execute(
            f"DELETE FROM {self.qualified_table} "
            "WHERE key = ? AND expires_at IS NOT NULL AND expires_at <= ?",
            (key, self._encode_ts(now)),
        )
        await db.commit()

    async def _truncate(self) -> None:
        db = self._require_db()
        await self._clear_rows(db)
        await db.commit()

    async def _scan(self, now: datetime) -> list[Record]:
        rows = await self._require_db().fetch_all(
            f"SELECT key, value, expires_at FROM {self.qualified_table} "
            "WHERE expires_at IS NULL OR expires_at > ?",
            (self._encode_ts(now),),
        )
        return [self._row_to_record(row) for row in rows]

    async def _release(self) -> None:
        if self._db is not None:
            db, self._db = self._db, None
            await db.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_db(self) -> SQLSession:
        if self._db is None:
            msg = f"{self.backend_name} store has no open session"
            raise RuntimeError(msg)
        return self._db

    def _row_to_record(self, row: dict[str, Any]) -> Record:
        return Record(
            key=row["key"],
            value=bytes(row["value"]),
            expires_at=self._decode_ts(row["expires_at"]),
        )
