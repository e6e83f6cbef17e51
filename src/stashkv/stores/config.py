# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Per-store configuration models and the pure merge function.

Each backend declares a frozen :class:`StoreConfig` subclass whose field
defaults are the backend's defaults.  There is no module-level default
instance: callers pass a config (or keyword overrides) at construction and
:func:`merge_config` produces the effective, immutable configuration.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stashkv.core.exceptions import ConfigurationError

C = TypeVar("C", bound="StoreConfig")


class StoreConfig(BaseModel):
    """Settings shared by every store.

    Attributes:
        namespace: Backend grouping (keyspace, database, schema, bucket).
        table: Data object inside the namespace (table, collection, prefix).
        expiration: Default TTL in seconds applied when ``set`` is called
            with ``ttl=0``.  ``0`` or negative means entries live forever.
        reset: Drop the store's data object on ``open()`` before recreating it.
        options: Opaque keyword arguments handed to the backend client.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace: str = "stashkv"
    table: str = "kv_store"
    expiration: float = 0
    reset: bool = False
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("expiration", mode="before")
    @classmethod
    def _parse_expiration(cls, v: object) -> object:
        if isinstance(v, timedelta):
            return v.total_seconds()
        return v


def merge_config(defaults: C, config: StoreConfig | None = None, **overrides: Any) -> C:
    """Return *defaults* updated with explicitly-set fields and overrides.

    Only fields the caller actually set on *config* win over *defaults*;
    keyword *overrides* win over both.  Inputs are never mutated.

    Raises:
        ConfigurationError: If the merged values fail validation.
    """
    merged = defaults.model_dump()
    if config is not None:
        merged.update(config.model_dump(exclude_unset=True))
    merged.update(overrides)
    try:
        return type(defaults).model_validate(merged)
    except ValidationError as exc:
        msg = f"Invalid {type(defaults).__name__}: {exc}"
        raise ConfigurationError(msg) from exc
