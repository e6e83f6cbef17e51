# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Backend-agnostic TTL resolution and expiry checks.

Rules shared by every store:

* ``ttl > 0`` -- the entry expires ``now + ttl``, overriding any default.
* ``ttl == 0`` -- the store-wide default applies if it is positive,
  otherwise the entry never expires.
* ``ttl < 0`` -- the entry never expires.  A negative store-wide
  default (``expiration``) likewise means "no default".

An entry whose ``expires_at`` is at or before the current instant is
logically absent, whether or not the backend has removed it yet.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

TTLValue = int | float | timedelta


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def to_seconds(value: TTLValue | None) -> float:
    """Normalise a TTL given as seconds or a ``timedelta`` to float seconds."""
    if value is None:
        return 0.0
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def default_ttl(expiration: TTLValue | None) -> float:
    """Normalise a store-wide default TTL; negative means no default."""
    seconds = to_seconds(expiration)
    return seconds if seconds > 0 else 0.0


def ensure_utc(moment: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes returned by drivers that store UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class Expiry:
    """Effective expiry of a single write.

    Attributes:
        ttl: Effective time-to-live in seconds; ``0.0`` means never.
        expires_at: Absolute UTC instant, or ``None`` for never.
    """

    ttl: float
    expires_at: datetime | None

    @property
    def never(self) -> bool:
        return self.expires_at is None

    @property
    def native_ttl(self) -> int:
        """Whole-second TTL for server-side expiry directives (``0`` = none).

        Rounded up so a sub-second TTL still produces a directive.
        """
        if self.ttl <= 0:
            return 0
        return max(1, math.ceil(self.ttl))

    @property
    def native_ttl_ms(self) -> int:
        if self.ttl <= 0:
            return 0
        return max(1, math.ceil(self.ttl * 1000))


NEVER = Expiry(ttl=0.0, expires_at=None)


def resolve_expiry(
    requested: TTLValue | None,
    default: TTLValue | None,
    now: datetime | None = None,
) -> Expiry:
    """Compute the effective expiry for a ``set`` call.

    Args:
        requested: TTL passed to ``set``.
        default: Store-wide default TTL (already normalised or raw).
        now: Current instant; defaults to :func:`utcnow`.
    """
    ttl = to_seconds(requested)
    if ttl == 0:
        ttl = default_ttl(default)
    if ttl <= 0:
        return NEVER
    now = now or utcnow()
    return Expiry(ttl=ttl, expires_at=now + timedelta(seconds=ttl))


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """Return ``True`` if *expires_at* is set and not in the future."""
    if expires_at is None:
        return False
    now = now or utcnow()
    return ensure_utc(expires_at) <= now


def to_epoch(moment: datetime | None) -> float | None:
    return moment.timestamp() if moment is not None else None


def from_epoch(seconds: float | None) -> datetime | None:
    if seconds is None:
        return None
    return datetime.fromtimestamp(float(seconds), tz=UTC)
