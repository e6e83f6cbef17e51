# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the MongoDB store with a mocked async client."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stashkv.core.exceptions import BackendError, BootstrapError, ConfigurationError
from stashkv.stores.mongodb import MongoDBStore


class _CollectionInvalid(Exception):
    pass


class _Cursor:
    def __init__(self, docs: list[dict]) -> None:
        self._docs = list(docs)

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        if not self._docs:
            raise StopAsyncIteration
        return self._docs.pop(0)


class _Mongo:
    def __init__(self, collections: list[str] | None = None) -> None:
        self.collection = MagicMock(name="collection")
        for method in ("create_index", "replace_one", "find_one", "delete_one", "delete_many"):
            setattr(self.collection, method, AsyncMock())
        self.collection.find_one.return_value = None
        self.collection.find.return_value = _Cursor([])

        self.database = MagicMock(name="database")
        self.database.list_collection_names = AsyncMock(return_value=collections or [])
        self.database.create_collection = AsyncMock()
        self.database.drop_collection = AsyncMock()
        self.database.__getitem__.return_value = self.collection

        self.client = MagicMock(name="client")
        self.client.admin.command = AsyncMock(return_value={"ok": 1})
        self.client.close = AsyncMock()
        self.client.__getitem__.return_value = self.database
        self.AsyncMongoClient = MagicMock(return_value=self.client)

    def patch(self):
        return patch.multiple(
            "stashkv.stores.mongodb",
            _PYMONGO_AVAILABLE=True,
            AsyncMongoClient=self.AsyncMongoClient,
            CollectionInvalid=_CollectionInvalid,
        )


@pytest.fixture
def mongo():
    m = _Mongo()
    with m.patch():
        yield m


@pytest.fixture
async def store(mongo, clock):
    s = await MongoDBStore.open(clock=clock, namespace="cache", table="entries")
    yield s
    await s.close()


class TestMongoBootstrap:
    async def test_creates_collection_and_ttl_index(self, store, mongo) -> None:
        mongo.AsyncMongoClient.assert_called_once_with("mongodb://127.0.0.1:27017", tz_aware=True)
        mongo.client.admin.command.assert_awaited_once_with("ping")
        mongo.client.__getitem__.assert_called_with("cache")
        mongo.database.create_collection.assert_awaited_once_with("entries")
        mongo.collection.create_index.assert_awaited_once_with(
            "expires_at", expireAfterSeconds=0, name="expires_at_ttl"
        )
        assert store.collection is mongo.collection
        assert store.conn is mongo.client

    async def test_existing_collection_not_recreated(self, clock) -> None:
        m = _Mongo(collections=["kv_store"])
        with m.patch():
            s = await MongoDBStore.open(clock=clock)
            m.database.create_collection.assert_not_awaited()
            await s.close()

    async def test_concurrent_creation_tolerated(self, clock) -> None:
        m = _Mongo()
        m.database.create_collection.side_effect = _CollectionInvalid("exists")
        with m.patch():
            s = await MongoDBStore.open(clock=clock)
            m.collection.create_index.assert_awaited_once()
            await s.close()

    async def test_reset_drops_collection(self, clock) -> None:
        m = _Mongo()
        with m.patch():
            s = await MongoDBStore.open(clock=clock, reset=True)
            m.database.drop_collection.assert_awaited_once_with("kv_store")
            m.database.create_collection.assert_awaited_once_with("kv_store")
            await s.close()

    async def test_ping_failure(self, clock) -> None:
        m = _Mongo()
        m.client.admin.command.side_effect = TimeoutError("server selection")
        with m.patch():
            with pytest.raises(BootstrapError) as exc_info:
                await MongoDBStore.open(clock=clock)
        assert exc_info.value.step == "connect"
        m.client.close.assert_awaited_once()

    def test_missing_library(self) -> None:
        with patch("stashkv.stores.mongodb._PYMONGO_AVAILABLE", False):
            with pytest.raises(ConfigurationError, match="pymongo"):
                MongoDBStore()


class TestMongoOperations:
    async def test_set_upserts_document(self, store, mongo, clock) -> None:
        await store.set("k", b"v", ttl=10)
        mongo.collection.replace_one.assert_awaited_once_with(
            {"_id": "k"},
            {"_id": "k", "value": b"v", "expires_at": clock.now + timedelta(seconds=10)},
            upsert=True,
        )

    async def test_get_live(self, store, mongo) -> None:
        mongo.collection.find_one.return_value = {"_id": "k", "value": b"v", "expires_at": None}
        assert await store.get("k") == b"v"
        mongo.collection.find_one.assert_awaited_once_with({"_id": "k"})

    async def test_get_expired_before_ttl_monitor_runs(self, store, mongo, clock) -> None:
        mongo.collection.find_one.return_value = {
            "_id": "k",
            "value": b"v",
            "expires_at": clock.now - timedelta(seconds=30),
        }
        assert await store.get("k") is None
        await store._drain_reaps()
        mongo.collection.delete_one.assert_awaited_once_with(
            {"_id": "k", "expires_at": {"$lte": clock.now}}
        )

    async def test_delete(self, store, mongo) -> None:
        await store.delete("k")
        mongo.collection.delete_one.assert_awaited_once_with({"_id": "k"})

    async def test_reset(self, store, mongo) -> None:
        await store.reset()
        mongo.collection.delete_many.assert_awaited_once_with({})

    async def test_list_queries_live_documents(self, store, mongo, clock) -> None:
        mongo.collection.find.return_value = _Cursor(
            [
                {"_id": "a", "value": b"1", "expires_at": None},
                {"_id": "b", "value": b"2", "expires_at": clock.now + timedelta(hours=1)},
            ]
        )
        assert await store.list() == {"a": b"1", "b": b"2"}
        mongo.collection.find.assert_called_once_with(
            {"$or": [{"expires_at": None}, {"expires_at": {"$gt": clock.now}}]}
        )

    async def test_client_error_is_backend_error(self, store, mongo) -> None:
        mongo.collection.replace_one.side_effect = RuntimeError("not primary")
        with pytest.raises(BackendError) as exc_info:
            await store.set("k", b"v")
        assert exc_info.value.operation == "set"

    async def test_close(self, store, mongo) -> None:
        await store.close()
        mongo.client.close.assert_awaited_once()
