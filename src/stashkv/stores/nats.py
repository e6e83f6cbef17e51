# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""NATS JetStream key-value store (``nats-py``).

The namespace is a KV bucket and the table a key prefix.  JetStream KV
only allows ``[A-Za-z0-9_=/.-]`` in keys, so caller keys are encoded with
unpadded URL-safe base64 and stored as ``<table>.<encoded>``.  Buckets
have no per-key TTL; each value is a small JSON envelope carrying its own
``expires_at``, checked on read and list.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stashkv.core.exceptions import ConfigurationError
from stashkv.core.expiry import Expiry, ensure_utc
from stashkv.stores.base import Record, Store
from stashkv.stores.config import StoreConfig

logger = logging.getLogger("stashkv.stores.nats")

try:
    import nats
    from nats.js.api import KeyValueConfig
    from nats.js.errors import (
        BucketNotFoundError,
        KeyNotFoundError,
        KeyWrongLastSequenceError,
        NoKeysError,
    )

    _NATS_AVAILABLE = True
except ImportError:  # pragma: no cover
    nats = None  # type: ignore[assignment]
    KeyValueConfig = None  # type: ignore[assignment,misc]
    BucketNotFoundError = None  # type: ignore[assignment,misc]
    KeyNotFoundError = None  # type: ignore[assignment,misc]
    KeyWrongLastSequenceError = None  # type: ignore[assignment,misc]
    NoKeysError = None  # type: ignore[assignment,misc]
    _NATS_AVAILABLE = False


def nats_available() -> bool:
    """Return ``True`` if ``nats-py`` is installed."""
    return _NATS_AVAILABLE


def encode_key(key: str) -> str:
    return base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii").rstrip("=")


def decode_key(token: str) -> str:
    padded = token + "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


class Envelope(BaseModel):
    """JSON body stored for each key."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    value: bytes
    expires_at: datetime | None = None


class NATSConfig(StoreConfig):
    """NATS store settings.

    Attributes:
        urls: Server URLs handed to ``nats.connect(servers=...)``.
        replicas: Stream replicas used when the bucket is created.
    """

    urls: list[str] = Field(default_factory=lambda: ["nats://127.0.0.1:4222"])
    replicas: int = 1


class NATSStore(Store):
    """JetStream KV bucket store with per-entry expiry envelopes."""

    backend_name = "nats"
    config_class = NATSConfig

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if not _NATS_AVAILABLE:
            raise ConfigurationError(
                "The 'nats-py' package is required for the NATS store. "
                "Install it with: pip install 'stashkv[nats]'"
            )
        super().__init__(*args, **kwargs)
        self._nc: Any = None
        self._kv: Any = None

    @property
    def conn(self) -> Any:
        """Return the NATS client connection."""
        return self._nc

    @property
    def bucket(self) -> str:
        return self._namespace

    @property
    def prefix(self) -> str:
        return f"{self._table}."

    def subject_key(self, key: str) -> str:
        return self.prefix + encode_key(key)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        config: NATSConfig = self._config  # type: ignore[assignment]

        with self._step("connect"):
            self._nc = await nats.connect(servers=config.urls, **config.options)

        js = self._nc.jetstream()
        with self._step("ensure bucket"):
            try:
                self._kv = await js.key_value(self.bucket)
            except BucketNotFoundError:
                self._kv = await js.create_key_value(
                    KeyValueConfig(bucket=self.bucket, replicas=config.replicas)
                )
                logger.info("Created KV bucket: %s", self.bucket)

        if config.reset:
            with self._step("purge keys"):
                await self._purge_prefixed()
            logger.info("Purged %s* in bucket %s for reset", self.prefix, self.bucket)

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        envelope = Envelope(value=value, expires_at=expiry.expires_at)
        await self._require_kv().put(self.subject_key(key), envelope.model_dump_json().encode())

    async def _read(self, key: str) -> Record | None:
        entry = await self._get_entry(self.subject_key(key))
        if entry is None:
            return None
        return self._entry_to_record(key, entry)

    async def _remove(self, key: str) -> None:
        await self._require_kv().delete(self.subject_key(key))

    async def _remove_expired(self, key: str, now: datetime) -> None:
        name = self.subject_key(key)
        entry = await self._get_entry(name)
        if entry is None:
            return
        record = self._entry_to_record(key, entry)
        if record is not None and record.is_expired(now):
            try:
                await self._require_kv().delete(name, last=entry.revision)
            except KeyWrongLastSequenceError:
                logger.debug("Key %s was rewritten before its lazy delete", key)

    async def _truncate(self) -> None:
        await self._purge_prefixed()

    async def _scan(self, now: datetime) -> list[Record]:
        records = []
        for name in await self._prefixed_keys():
            entry = await self._get_entry(name)
            if entry is None:
                continue
            try:
                key = decode_key(name[len(self.prefix):])
            except (binascii.Error, UnicodeDecodeError):
                logger.warning("Ignoring foreign KV key %s", name)
                continue
            record = self._entry_to_record(key, entry)
            if record is not None:
                records.append(record)
        return records

    async def _release(self) -> None:
        nc, self._nc = self._nc, None
        self._kv = None
        if nc is not None:
            await nc.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_kv(self) -> Any:
        if self._kv is None:
            msg = "nats store has no open session"
            raise RuntimeError(msg)
        return self._kv

    async def _get_entry(self, name: str) -> Any:
        try:
            entry = await self._require_kv().get(name)
        except KeyNotFoundError:
            return None
        # delete and purge markers carry no value
        if not entry.value:
            return None
        return entry

    @staticmethod
    def _entry_to_record(key: str, entry: Any) -> Record | None:
        try:
            envelope = Envelope.model_validate_json(entry.value)
        except ValidationError:
            logger.warning("Ignoring malformed KV entry %s", entry.key)
            return None
        return Record(key=key, value=envelope.value, expires_at=ensure_utc(envelope.expires_at))

    async def _prefixed_keys(self) -> list[str]:
        try:
            names = await self._require_kv().keys()
        except NoKeysError:
            return []
        return [name for name in names if name.startswith(self.prefix)]

    async def _purge_prefixed(self) -> None:
        kv = self._require_kv()
        for name in await self._prefixed_keys():
            await kv.purge(name)
