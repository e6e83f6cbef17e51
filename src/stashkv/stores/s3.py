# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""S3-compatible object store (``boto3``).

Each record is one object ``<table>/<key>`` in the namespace bucket, with
its expiry carried in the ``expires-at`` user metadata (epoch seconds).
S3 has no per-object TTL, so expiry is enforced on read and list only.
``boto3`` is synchronous; every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from stashkv.core.exceptions import ConfigurationError
from stashkv.core.expiry import Expiry, from_epoch, to_epoch
from stashkv.stores.base import Record, Store
from stashkv.stores.config import StoreConfig

logger = logging.getLogger("stashkv.stores.s3")

try:
    import boto3
    from botocore.exceptions import ClientError

    _BOTO3_AVAILABLE = True
except ImportError:  # pragma: no cover
    boto3 = None  # type: ignore[assignment]
    ClientError = None  # type: ignore[assignment,misc]
    _BOTO3_AVAILABLE = False

_EXPIRES_META = "expires-at"
# head_bucket reports a bare status code; only these mean "create it"
_MISSING_BUCKET_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})
# a missing bucket on get_object is a backend error, not an absent key
_MISSING_KEY_CODES = frozenset({"404", "NoSuchKey"})
# DeleteObjects accepts at most 1000 keys per request
_DELETE_BATCH = 1000


def boto3_available() -> bool:
    """Return ``True`` if ``boto3`` is installed."""
    return _BOTO3_AVAILABLE


def _error_code(exc: Exception) -> str:
    response = getattr(exc, "response", None) or {}
    return str(response.get("Error", {}).get("Code", ""))


class S3DeleteError(RuntimeError):
    """Raised when ``DeleteObjects`` reports keys it could not remove."""

    def __init__(self, bucket: str, errors: list[dict[str, Any]]) -> None:
        self.bucket = bucket
        self.errors = errors
        failed = ", ".join(
            f"{e.get('Key', '?')} ({e.get('Code', 'unknown')})" for e in errors[:5]
        )
        more = f" and {len(errors) - 5} more" if len(errors) > 5 else ""
        super().__init__(f"Failed to delete from s3://{bucket}: {failed}{more}")


class S3Config(StoreConfig):
    """S3 store settings.

    Attributes:
        endpoint: Custom endpoint URL (MinIO, LocalStack); empty uses AWS.
        region: Region for the client and for bucket creation.
        access_key: Access key id; empty defers to the default chain.
        secret_key: Secret access key.
    """

    endpoint: str = ""
    region: str = "us-east-1"
    access_key: str = ""
    secret_key: str = ""


class S3Store(Store):
    """Bucket-backed store with expiry kept in object metadata."""

    backend_name = "s3"
    config_class = S3Config

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if not _BOTO3_AVAILABLE:
            raise ConfigurationError(
                "The 'boto3' package is required for the S3 store. "
                "Install it with: pip install 'stashkv[s3]'"
            )
        super().__init__(*args, **kwargs)
        self._client: Any = None

    @property
    def conn(self) -> Any:
        """Return the ``boto3`` S3 client."""
        return self._client

    @property
    def bucket(self) -> str:
        return self._namespace

    @property
    def prefix(self) -> str:
        return f"{self._table}/"

    def object_key(self, key: str) -> str:
        return self.prefix + key

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> None:
        config: S3Config = self._config  # type: ignore[assignment]

        with self._step("connect"):
            self._client = self._build_client(config)

        with self._step("ensure bucket"):
            await self._ensure_bucket(config)

        if config.reset:
            with self._step("delete objects"):
                await self._delete_prefixed()
            logger.info("Deleted objects under s3://%s/%s for reset", self.bucket, self.prefix)

    def _build_client(self, config: S3Config) -> Any:
        kwargs: dict[str, Any] = {"region_name": config.region}
        if config.endpoint:
            kwargs["endpoint_url"] = config.endpoint
        if config.access_key:
            kwargs["aws_access_key_id"] = config.access_key
            kwargs["aws_secret_access_key"] = config.secret_key
        kwargs.update(config.options)
        return boto3.client("s3", **kwargs)

    async def _ensure_bucket(self, config: S3Config) -> None:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
            return
        except ClientError as exc:
            if _error_code(exc) not in _MISSING_BUCKET_CODES:
                raise

        params: dict[str, Any] = {"Bucket": self.bucket}
        # us-east-1 rejects an explicit LocationConstraint
        if config.region and config.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": config.region}
        try:
            await asyncio.to_thread(self._client.create_bucket, **params)
        except ClientError as exc:
            if _error_code(exc) != "BucketAlreadyOwnedByYou":
                raise
        else:
            logger.info("Created bucket: %s", self.bucket)

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _write(self, key: str, value: bytes, expiry: Expiry) -> None:
        metadata: dict[str, str] = {}
        if expiry.expires_at is not None:
            metadata[_EXPIRES_META] = repr(to_epoch(expiry.expires_at))
        await asyncio.to_thread(
            self._require_client().put_object,
            Bucket=self.bucket,
            Key=self.object_key(key),
            Body=value,
            Metadata=metadata,
        )

    async def _read(self, key: str) -> Record | None:
        return await asyncio.to_thread(self._get_object, key)

    async def _remove(self, key: str) -> None:
        await asyncio.to_thread(
            self._require_client().delete_object,
            Bucket=self.bucket,
            Key=self.object_key(key),
        )

    async def _truncate(self) -> None:
        await self._delete_prefixed()

    async def _scan(self, now: datetime) -> list[Record]:
        keys = await asyncio.to_thread(self._list_keys)
        records = []
        for key in keys:
            record = await asyncio.to_thread(self._get_object, key)
            # removed between listing and fetching
            if record is not None:
                records.append(record)
        return records

    async def _release(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await asyncio.to_thread(client.close)

    # ------------------------------------------------------------------
    # Internal helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _require_client(self) -> Any:
        if self._client is None:
            msg = "s3 store has no open session"
            raise RuntimeError(msg)
        return self._client

    def _get_object(self, key: str) -> Record | None:
        try:
            response = self._require_client().get_object(
                Bucket=self.bucket, Key=self.object_key(key)
            )
        except ClientError as exc:
            if _error_code(exc) in _MISSING_KEY_CODES:
                return None
            raise
        body = response["Body"]
        try:
            value = body.read()
        finally:
            body.close()
        raw_expiry = response.get("Metadata", {}).get(_EXPIRES_META)
        expires_at = from_epoch(float(raw_expiry)) if raw_expiry else None
        return Record(key=key, value=value, expires_at=expires_at)

    def _list_object_keys(self) -> list[str]:
        paginator = self._require_client().get_paginator("list_objects_v2")
        keys: list[str] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def _list_keys(self) -> list[str]:
        return [name[len(self.prefix):] for name in self._list_object_keys()]

    async def _delete_prefixed(self) -> None:
        client = self._require_client()
        names = await asyncio.to_thread(self._list_object_keys)
        for start in range(0, len(names), _DELETE_BATCH):
            batch = names[start:start + _DELETE_BATCH]
            response = await asyncio.to_thread(
                client.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": name} for name in batch], "Quiet": True},
            )
            # quiet mode lists only the failures, and never raises for them
            errors = (response or {}).get("Errors") or []
            if errors:
                raise S3DeleteError(self.bucket, errors)
