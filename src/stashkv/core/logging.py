# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Structured logging for stores, with credential redaction.

Store log calls pass ``extra=`` with the fields in :data:`STORE_FIELDS`;
the JSON formatter emits them as top-level keys and the text formatter
appends them as ``name=value`` pairs.
"""

import json
import logging
import re
import sys
from typing import Any

# (pattern, replacement); group 1 is the part that stays visible
REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    # user:password@ in connection URLs (postgresql://, redis://, mongodb://, nats://)
    (re.compile(r"(://[^:/@\s]+:)[^@\s]+(?=@)"), r"\1[REDACTED]"),
    # AWS access key ids keep their first eight characters
    (re.compile(r"(AKIA[A-Z0-9]{4})[A-Z0-9]{12}"), r"\1[REDACTED]"),
    (
        re.compile(
            r"((?:aws_secret_access_key|secret_key|password)\s*[=:]\s*['\"]?)[^'\"\s,}]+",
            re.IGNORECASE,
        ),
        r"\1[REDACTED]",
    ),
    (re.compile(r"(Bearer\s+[a-zA-Z0-9\-._~+/]{10})[a-zA-Z0-9\-._~+/]*"), r"\1[REDACTED]"),
]

STORE_FIELDS = ("backend", "namespace", "table")


def redact_sensitive(text: str) -> str:
    for pattern, replacement in REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def store_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the store context attached to *record* via ``extra=``."""
    return {name: getattr(record, name) for name in STORE_FIELDS if hasattr(record, name)}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            **store_fields(record),
            "message": redact_sensitive(record.getMessage()),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = redact_sensitive(
                f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
            )
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(f"{k}={v}" for k, v in store_fields(record).items())
        if context:
            line = f"{line} [{context}]"
        return redact_sensitive(line)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stderr handler on the ``stashkv`` logger.

    Calling it again replaces the previous handler, so the CLI can run it
    once per invocation.
    """
    logger = logging.getLogger("stashkv")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(TextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
