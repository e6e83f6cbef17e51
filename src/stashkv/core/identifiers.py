# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Validation of namespace and table names before they reach a backend.

Several backends interpolate these names directly into query text
(``CREATE KEYSPACE``, ``SELECT ... FROM ns.table``), which cannot be
parameterised.  Every store validates its identifiers in its constructor,
before any connection is attempted.
"""

from __future__ import annotations

import re

from stashkv.core.exceptions import InvalidIdentifierError

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def validate_identifier(name: str, role: str) -> str:
    """Return *name* unchanged if it is a safe identifier.

    Args:
        name: Candidate namespace/table name.
        role: What the name is used as (``"namespace"``, ``"table"``),
            reported back in the error.

    Raises:
        InvalidIdentifierError: If *name* is empty or contains anything
            other than ASCII letters, digits and underscore.
    """
    # fullmatch on str so a trailing newline cannot slip past ``$``
    if not isinstance(name, str) or IDENTIFIER_PATTERN.fullmatch(name) is None:
        raise InvalidIdentifierError(role, str(name))
    return name
