# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite session over a single :mod:`aiosqlite` connection."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite

from stashkv.sql.session import Params, Row, SQLSession


class SQLiteSession(SQLSession):
    dialect = "sqlite"

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection

    @classmethod
    async def connect(cls, database: Path | str, **options: Any) -> SQLiteSession:
        """Open *database* in WAL mode with rows returned as mappings.

        ``options`` go to :func:`aiosqlite.connect` (``timeout``,
        ``isolation_level``...).
        """
        conn = await aiosqlite.connect(str(database), **options)
        conn.row_factory = aiosqlite.Row
        try:
            # readers don't block the writer; in-memory databases report "memory"
            await conn.execute("PRAGMA journal_mode=WAL")
        except Exception:
            await conn.close()
            raise
        return cls(conn)

    @property
    def connection(self) -> aiosqlite.Connection:
        return self._conn

    async def execute(self, query: str, params: Params = None) -> aiosqlite.Cursor:
        return await self._conn.execute(query, params or ())

    async def fetch_one(self, query: str, params: Params = None) -> Row | None:
        async with self._conn.execute(query, params or ()) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def fetch_all(self, query: str, params: Params = None) -> list[Row]:
        async with self._conn.execute(query, params or ()) as cursor:
            return [dict(row) for row in await cursor.fetchall()]

    async def commit(self) -> None:
        await self._conn.commit()

    async def close(self) -> None:
        await self._conn.close()
