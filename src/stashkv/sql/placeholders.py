# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Rewriting of ``?`` placeholders for drivers that number their parameters."""

from __future__ import annotations

import itertools
import re

# single- or double-quoted runs; a doubled quote is an escaped quote
_QUOTED = re.compile(r"""('(?:[^']|'')*'|"(?:[^"]|"")*")""")

DIALECTS = ("sqlite", "postgres")


def adapt_query(query: str, dialect: str) -> str:
    """Return *query* with placeholders in the style *dialect* expects.

    SQLite takes ``?`` as is.  PostgreSQL (asyncpg) gets ``$1, $2, ...``;
    question marks inside quoted literals and identifiers are left alone.

    Raises:
        ValueError: If *dialect* is not recognised.
    """
    if dialect == "sqlite":
        return query
    if dialect == "postgres":
        numbers = itertools.count(1)
        parts = _QUOTED.split(query)
        # split() with one group puts quoted runs at odd indexes
        return "".join(
            part if i % 2 else re.sub(r"\?", lambda _: f"${next(numbers)}", part)
            for i, part in enumerate(parts)
        )
    msg = f"Unknown SQL dialect: {dialect!r}. Expected one of {DIALECTS}."
    raise ValueError(msg)
