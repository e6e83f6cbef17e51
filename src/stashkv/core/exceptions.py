# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Custom exception hierarchy for stashkv."""

from __future__ import annotations


class StashError(Exception):
    """Base exception for all stashkv errors."""


class ConfigurationError(StashError):
    """Invalid or missing configuration."""


class InvalidIdentifierError(ConfigurationError):
    """A namespace or table name contains characters outside ``[A-Za-z0-9_]``."""

    def __init__(self, role: str, name: str) -> None:
        self.role = role
        self.name = name
        super().__init__(
            f"invalid {role} name {name!r}: must contain only "
            "alphanumeric characters and underscores"
        )


class BootstrapError(StashError):
    """Namespace/table creation or session scoping failed during ``open()``."""

    def __init__(self, step: str, namespace: str, cause: BaseException | None = None) -> None:
        self.step = step
        self.namespace = namespace
        msg = f"bootstrap failed at step {step!r} for namespace {namespace!r}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class BackendError(StashError):
    """The backend client failed while serving a store operation."""

    def __init__(self, operation: str, key: str | None = None, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.key = key
        target = f" (key={key!r})" if key is not None else ""
        msg = f"{operation} failed{target}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class StoreStateError(StashError):
    """Operation attempted while the store is not ready (unopened or closed)."""
