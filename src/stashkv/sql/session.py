# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Minimal async session interface shared by the SQL stores.

:class:`~stashkv.stores.sql.SQLStore` writes every statement once with
``?`` placeholders; each session rewrites them for its driver if needed.
"""

from __future__ import annotations

import abc
from typing import Any

Params = tuple[Any, ...] | None
Row = dict[str, Any]


class SQLSession(abc.ABC):
    """One connection (SQLite) or pool (PostgreSQL) scoped to a store."""

    dialect: str

    @abc.abstractmethod
    async def execute(self, query: str, params: Params = None) -> Any:
        """Run a statement and return the driver's cursor or status."""

    @abc.abstractmethod
    async def fetch_one(self, query: str, params: Params = None) -> Row | None:
        """Return the first row as a dict, or ``None``."""

    @abc.abstractmethod
    async def fetch_all(self, query: str, params: Params = None) -> list[Row]:
        ...

    @abc.abstractmethod
    async def commit(self) -> None:
        """Commit pending writes; a no-op where the driver auto-commits."""

    @abc.abstractmethod
    async def close(self) -> None:
        ...
