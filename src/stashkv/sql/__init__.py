# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQL sessions shared by the SQLite and PostgreSQL stores."""

from stashkv.sql.placeholders import adapt_query
from stashkv.sql.session import SQLSession

__all__ = ["SQLSession", "adapt_query"]
