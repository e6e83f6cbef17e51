# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Behaviour every store must share, run against the in-process backends.

The memory store and a real SQLite file exercise the base ``Store``
contract end to end; network backends are covered with mocked clients
in their own modules.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from stashkv.core.exceptions import (
    BackendError,
    BootstrapError,
    InvalidIdentifierError,
    StoreStateError,
)
from stashkv.stores.base import Store, StoreState
from stashkv.stores.memory import MemoryStore
from stashkv.stores.sqlite import SQLiteStore

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, clock, tmp_path):
    if request.param == "memory":
        s = await MemoryStore.open(clock=clock)
    else:
        s = await SQLiteStore.open(database=str(tmp_path / "kv.db"), clock=clock)
    yield s
    await s.close()


# ---------------------------------------------------------------------------
# Core operations
# ---------------------------------------------------------------------------


class TestRoundTrip:
    async def test_set_then_get(self, store: Store) -> None:
        await store.set("k1", b"v1")
        assert await store.get("k1") == b"v1"

    async def test_get_missing_is_none(self, store: Store) -> None:
        assert await store.get("never-set") is None

    async def test_str_value_is_utf8_encoded(self, store: Store) -> None:
        await store.set("greeting", "héllo")
        assert await store.get("greeting") == "héllo".encode()

    async def test_bytearray_value(self, store: Store) -> None:
        await store.set("k", bytearray(b"\x00\x01"))
        assert await store.get("k") == b"\x00\x01"

    async def test_empty_value_round_trips(self, store: Store) -> None:
        await store.set("empty", b"")
        assert await store.get("empty") == b""

    async def test_last_write_wins(self, store: Store) -> None:
        await store.set("k", b"first", ttl=5)
        await store.set("k", b"second")
        assert await store.get("k") == b"second"

    async def test_unusual_keys(self, store: Store) -> None:
        for key in ["with space", "a/b/c", "ünïcødé", "x:y*z"]:
            await store.set(key, key)
        for key in ["with space", "a/b/c", "ünïcødé", "x:y*z"]:
            assert await store.get(key) == key.encode()


class TestValidation:
    async def test_empty_key_rejected(self, store: Store) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            await store.set("", b"v")
        with pytest.raises(ValueError):
            await store.get("")

    async def test_unsupported_value_type(self, store: Store) -> None:
        with pytest.raises(TypeError):
            await store.set("k", 42)  # type: ignore[arg-type]


class TestExpiry:
    async def test_expired_key_reads_absent(self, store: Store, clock) -> None:
        await store.set("b", b"y", ttl=1)
        clock.advance(2)
        assert await store.get("b") is None

    async def test_live_until_boundary(self, store: Store, clock) -> None:
        await store.set("k", b"v", ttl=10)
        clock.advance(9.5)
        assert await store.get("k") == b"v"
        clock.advance(0.5)
        assert await store.get("k") is None

    async def test_timedelta_ttl(self, store: Store, clock) -> None:
        await store.set("k", b"v", ttl=timedelta(seconds=3))
        clock.advance(3)
        assert await store.get("k") is None

    async def test_negative_ttl_never_expires(self, store: Store, clock) -> None:
        await store.set("k", b"v", ttl=-1)
        clock.advance(10 * 365 * 24 * 3600)
        assert await store.get("k") == b"v"

    async def test_expired_read_is_lazily_deleted(self, store: Store, clock) -> None:
        await store.set("k", b"v", ttl=1)
        clock.advance(1)
        assert await store.get("k") is None
        await store._drain_reaps()
        assert await store._read("k") is None

    async def test_rewrite_survives_pending_reap(self, store: Store, clock) -> None:
        await store.set("k", b"old", ttl=1)
        clock.advance(1)
        assert await store.get("k") is None
        await store.set("k", b"new")
        await store._drain_reaps()
        assert await store.get("k") == b"new"


class TestDeleteAndReset:
    async def test_delete(self, store: Store) -> None:
        await store.set("k", b"v")
        await store.delete("k")
        assert await store.get("k") is None

    async def test_delete_is_idempotent(self, store: Store) -> None:
        await store.delete("never-set")
        await store.set("k", b"v")
        await store.delete("k")
        await store.delete("k")

    async def test_reset_removes_everything(self, store: Store) -> None:
        await store.set("a", b"1")
        await store.set("b", b"2", ttl=30)
        await store.reset()
        assert await store.get("a") is None
        assert await store.get("b") is None
        assert await store.list() == {}

    async def test_store_usable_after_reset(self, store: Store) -> None:
        await store.set("a", b"1")
        await store.reset()
        await store.set("a", b"2")
        assert await store.get("a") == b"2"


class TestList:
    async def test_list_returns_live_entries(self, store: Store) -> None:
        await store.set("a", b"1")
        await store.set("b", b"2", ttl=60)
        assert await store.list() == {"a": b"1", "b": b"2"}

    async def test_list_excludes_just_expired(self, store: Store, clock) -> None:
        await store.set("forever", b"1")
        await store.set("brief", b"2", ttl=1)
        clock.advance(1)
        assert await store.list() == {"forever": b"1"}

    async def test_list_empty(self, store: Store) -> None:
        assert await store.list() == {}


class TestConcreteScenario:
    async def test_set_get_expire_delete_reset(self, store: Store, clock) -> None:
        await store.set("a", "x", 0)
        assert await store.get("a") == b"x"

        await store.set("b", "y", 1)
        clock.advance(2)
        assert await store.get("b") is None

        await store.delete("a")
        assert await store.get("a") is None

        await store.reset()
        assert await store.list() == {}


# ---------------------------------------------------------------------------
# Default TTL
# ---------------------------------------------------------------------------


class TestDefaultTTL:
    async def test_default_applies_to_zero_ttl(self, clock) -> None:
        store = await MemoryStore.open(clock=clock, expiration=10)
        await store.set("k", b"v")
        clock.advance(10)
        assert await store.get("k") is None
        await store.close()

    async def test_explicit_ttl_overrides_default(self, clock) -> None:
        store = await MemoryStore.open(clock=clock, expiration=10)
        await store.set("k", b"v", ttl=60)
        clock.advance(30)
        assert await store.get("k") == b"v"
        await store.close()

    async def test_negative_default_means_indefinite(self, clock) -> None:
        store = await MemoryStore.open(clock=clock, expiration=-1)
        assert store.default_ttl == 0
        await store.set("k", b"v")
        clock.advance(86400)
        assert await store.get("k") == b"v"
        await store.close()


# ---------------------------------------------------------------------------
# Lifecycle and errors
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_open_moves_to_ready(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        assert store.state is StoreState.READY
        await store.close()
        assert store.state is StoreState.CLOSED

    async def test_operations_before_bootstrap_fail(self) -> None:
        store = MemoryStore()
        assert store.state is StoreState.UNINITIALIZED
        with pytest.raises(StoreStateError):
            await store.get("k")

    async def test_operations_after_close_fail(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        await store.close()
        with pytest.raises(StoreStateError):
            await store.set("k", b"v")
        with pytest.raises(StoreStateError):
            await store.list()

    async def test_close_twice_is_noop(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        await store.close()
        await store.close()

    async def test_bootstrap_twice_fails(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        with pytest.raises(StoreStateError):
            await store.bootstrap()
        await store.close()

    async def test_async_context_manager_closes(self, clock) -> None:
        async with await MemoryStore.open(clock=clock) as store:
            await store.set("k", b"v")
        assert store.state is StoreState.CLOSED

    async def test_close_waits_for_pending_reaps(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        await store.set("k", b"v", ttl=1)
        clock.advance(1)
        await store.get("k")
        assert store._reaps
        await store.close()
        assert not store._reaps

    async def test_describe(self, clock) -> None:
        store = await MemoryStore.open(clock=clock, namespace="app", table="sessions", expiration=5)
        info = store.describe()
        assert info["backend"] == "memory"
        assert info["namespace"] == "app"
        assert info["table"] == "sessions"
        assert info["default_ttl"] == 5
        assert info["state"] == "ready"
        await store.close()


class TestInvalidIdentifiers:
    @pytest.mark.parametrize("name", ["my keyspace", "my-keyspace", "it's", 'say"what'])
    async def test_rejected_before_backend(self, name: str) -> None:
        with patch.object(MemoryStore, "_bootstrap", new_callable=AsyncMock) as boot:
            with pytest.raises(InvalidIdentifierError) as exc_info:
                await MemoryStore.open(namespace=name)
            assert exc_info.value.role == "namespace"
            boot.assert_not_awaited()

    async def test_invalid_table(self) -> None:
        with pytest.raises(InvalidIdentifierError) as exc_info:
            SQLiteStore(table="kv store", database=":memory:")
        assert exc_info.value.role == "table"


class _FailingStore(MemoryStore):
    released = False

    async def _bootstrap(self) -> None:
        with self._step("create table"):
            raise RuntimeError("disk full")

    async def _release(self) -> None:
        type(self).released = True
        await super()._release()


class TestFailures:
    async def test_bootstrap_failure_is_wrapped(self) -> None:
        with pytest.raises(BootstrapError) as exc_info:
            await _FailingStore.open(namespace="ns1")
        err = exc_info.value
        assert err.step == "create table"
        assert err.namespace == "ns1"
        assert isinstance(err.__cause__, RuntimeError)
        assert _FailingStore.released is True

    async def test_unattributed_bootstrap_failure(self) -> None:
        store = MemoryStore()
        with patch.object(store, "_bootstrap", AsyncMock(side_effect=OSError("boom"))):
            with pytest.raises(BootstrapError) as exc_info:
                await store.bootstrap()
        assert exc_info.value.step == "bootstrap"
        assert store.state is StoreState.FAILED

    async def test_backend_error_wraps_client_failure(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        with patch.object(store, "_read", AsyncMock(side_effect=ConnectionError("reset"))):
            with pytest.raises(BackendError) as exc_info:
                await store.get("k")
        assert exc_info.value.operation == "get"
        assert exc_info.value.key == "k"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        await store.close()

    async def test_reap_failure_is_logged_not_raised(
        self, clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = await MemoryStore.open(clock=clock)
        await store.set("k", b"v", ttl=1)
        clock.advance(1)
        with patch.object(
            store, "_remove_expired", AsyncMock(side_effect=ConnectionError("gone"))
        ):
            with caplog.at_level(logging.WARNING, logger="stashkv.stores"):
                assert await store.get("k") is None
                await store._drain_reaps()
        assert "Failed to delete expired key k" in caplog.text
        await store.close()


class TestMemoryStore:
    async def test_list_prunes_expired_entries(self, clock) -> None:
        store = await MemoryStore.open(clock=clock)
        await store.set("keep", b"1")
        await store.set("drop", b"2", ttl=1)
        clock.advance(1)
        assert await store.list() == {"keep": b"1"}
        assert set(store.conn) == {"keep"}
        await store.close()
        assert store.conn is None
