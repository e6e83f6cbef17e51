# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Cassandra / ScyllaDB store (``cassandra-driver``).

Writes carry a native ``USING TTL`` directive, and each row also stores
``expires_at`` so a read can still report a row absent when it is seen
past its expiry (clock skew between client and nodes, or a TTL rounded
up to whole seconds).  The driver is synchronous; calls run in a worker
thread via :func:`asyncio.to_thread`.

Bootstrap follows the keyspace-first sequence: an unscoped session checks
``system_schema.keyspaces`` and creates the keyspace if needed, then a
second session bound to the keyspace becomes the store's session.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from pydantic import Field

from stashkv.core.exceptions import ConfigurationError
from stashkv.core.expiry import Expiry, ensure_utc
from stashkv.stores.base import Record, Store
from stashkv.stores.config import StoreConfig

logger = logging.getLogger("stashkv.stores.cassandra")

try:
    from cassandra import ConsistencyLevel
    from cassandra.auth import PlainTextAuthProvider
    from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile

    _CASSANDRA_AVAILABLE = True
except ImportError:  # pragma: no cover
    ConsistencyLevel = None  # type: ignore[assignment,misc]
    PlainTextAuthProvider = None  # type: ignore[assignment,misc]
    Cluster = None  # type: ignore[assignment,misc]
    ExecutionProfile = None  # type: ignore[assignment,misc]
    EXEC_PROFILE_DEFAULT = None  # type: ignore[assignment]
    _CASSANDRA_AVAILABLE = False


def cassandra_available() -> bool:
    """Return ``True`` if ``cassandra-driver`` is installed."""
    return _CASSANDRA_AVAILABLE


class CassandraConfig(StoreConfig):
    """Cassandra store settings.

    Attributes:
        hosts: Contact points.
        port: Native protocol port.
        username: Optional plain-text auth user.
        password: Optional plain-text auth password.
        consistency: Consistency level name (``ONE``, ``QUORUM``...).
        replication: Replication map used when the keyspace is created.
    """

    hosts: list[str] = Field(default_factory=lambda: ["127.0.0.1"])
    port: int = 9042
    username: str = ""
    password: str = ""
    consistency: str = "ONE"
    replication: dict[str, str | int] = Field(
        default_factory=lambda: {"class": "SimpleStrategy", "replication_factor": 1}
    )


def _cql_literal(value: str | int) -> str:
    if isinstance(value, int):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def replication_cql(replication: dict[str, str | int]) -> str:
    """Render a replication map as a CQL map literal."""
    items = ", ".join(f"{_cql_literal(k)}: {_cql_literal(v)}" for k, v in replication.items())
    return "{" + items + "}"


class CassandraStore(Store):
    """Wide-column store with native TTL and a stored expiry backup."""

    backend_name = "cassandra"
    config_class = CassandraConfig
    native_ttl = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if not _CASSANDRA_AVAILABLE:
            raise ConfigurationError(
                "The 'cassandra-driver' package is required for the Cassandra store. "
                "Install it with: pip install 'stashkv[cassandra]'"
            )
        super().__init__(*args, **kwargs)
        config: CassandraConfig = self._config  # type: ignore[assignment]
        try:
            self._consistency = ConsistencyLevel.name_to_value[config.consistency.upper()]
        except KeyError:
            msg = f"Unknown Cassandra consistency level: {config.consistency!r}"
            raise ConfigurationError(msg) from None
        self._cluster: Any = None
        self._session: Any = None
        self._statements: dict[str, Any] = {}

    @property
    def conn(self) -> Any:
        """Return the keyspace-scoped ``cassandra.cluster.Session``."""
        return self._session

    @property
    def _keyspace(self) -> str:
        # unquoted CQL identifiers are case-insensitive and stored lower case
        return self._namespace.lower()

    @property
    def qualified_table(self) -> str:
        return f"{self._namespace}.{self._table}"

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        config: CassandraConfig = self._config  # type: ignore[assignment]

        with self._step("connect system"):
            self._cluster = self._build_cluster(config)
            system = await asyncio.to_thread(self._cluster.connect)
        try:
            with self._step("ensure keyspace"):
                await asyncio.to_thread(self._ensure_keyspace, system, config)
        finally:
            await asyncio.to_thread(system.shutdown)

        with self._step("connect keyspace"):
            self._session = await asyncio.to_thread(self._cluster.connect, self._keyspace)

        if config.reset:
            with self._step("drop table"):
                await self._execute(f"DROP TABLE IF EXISTS {self.qualified_table}")
            logger.info("Dropped table %s for reset", self.qualified_table)

        with self._step("create table"):
            await self._execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.qualified_table} (
                    key text PRIMARY KEY,
                    value blob,
                    expires_at timestamp
                )
                """
            )

        with self._step("prepare statements"):
            await self._prepare_statements()

    def _build_cluster(self, config: CassandraConfig) -> Any:
        profile = ExecutionProfile(consistency_level=self._consistency)
        kwargs: dict[str, Any] = {
            "contact_points": config.hosts,
            "port": config.port,
            "execution_profiles": {EXEC_PROFILE_DEFAULT: profile},
        }
        if config.username:
            kwargs["auth_provider"] = PlainTextAuthProvider(
                username=config.username, password=config.password
            )
        kwargs.update(config.options)
        return Cluster(**kwargs)

    def _ensure_keyspace(self, system: Any, config: CassandraConfig) -> None:
        row = system.execute(
            "SELECT COUNT(*) FROM system_schema.keyspaces WHERE keyspace_name = %s",
            (self._keyspace,),
        ).one()
        if row is not None and row[0] > 0:
            return
        system.execute(
            f"CREATE KEYSPACE IF NOT EXISTS {self._namespace} "
            f"WITH REPLICATION = {replication_cql(config.replication)}"
        )
        logger.info("Created keyspace: %s", self._namespace)

    async def _prepare_statements(self) -> None:
        table = self.qualified_table
        queries = {
            "insert": f"INSERT INTO {table} (key, value, expires_at) VALUES (?, ?, ?) USING TTL ?",
            "select": f"SELECT value, expires_at FROM {table} WHERE key = ?",
            "delete": f"DELETE FROM {table} WHERE key = ?",
        }
        for name, query in queries.items():
            self._statements[name] = await asyncio.to_thread(self._session.prepare, query)

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        # TTL 0 means "no TTL" to Cassandra
        await self._execute(
            self._statements["insert"],
            (key, value, expiry.expires_at, expiry.native_ttl),
        )

    async def _read(self, key: str) -> Record | None:
        result = await self._execute(self._statements["select"], (key,))
        row = result.one()
        if row is None:
            return None
        return Record(
            key=key,
            value=bytes(row.value or b""),
            expires_at=ensure_utc(row.expires_at),
        )

    async def _remove(self, key: str) -> None:
        await self._execute(self._statements["delete"], (key,))

    async def _truncate(self) -> None:
        await self._execute(f"TRUNCATE TABLE {self.qualified_table}")

    async def _scan(self, now: datetime) -> list[Record]:
        session = self._require_session()
        query = f"SELECT key, value, expires_at FROM {self.qualified_table}"

        def _fetch_all() -> list[Any]:
            # iterating a ResultSet fetches further pages synchronously
            return list(session.execute(query))

        rows = await asyncio.to_thread(_fetch_all)
        return [
            Record(
                key=row.key,
                value=bytes(row.value or b""),
                expires_at=ensure_utc(row.expires_at),
            )
            for row in rows
        ]

    async def _release(self) -> None:
        session, self._session = self._session, None
        cluster, self._cluster = self._cluster, None
        self._statements.clear()
        if session is not None:
            await asyncio.to_thread(session.shutdown)
        if cluster is not None:
            await asyncio.to_thread(cluster.shutdown)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> Any:
        if self._session is None:
            msg = "cassandra store has no open session"
            raise RuntimeError(msg)
        return self._session

    async def _execute(self, statement: Any, params: tuple[Any, ...] | None = None) -> Any:
        session = self._require_session()
        return await asyncio.to_thread(session.execute, statement, params)
