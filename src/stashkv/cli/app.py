# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Typer CLI application root."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer

from stashkv.core.exceptions import StashError

if TYPE_CHECKING:
    from stashkv.stores.base import Store

T = TypeVar("T")

app = typer.Typer(
    name="stashkv",
    help="Expiring key-value store over pluggable backends",
    no_args_is_help=True,
)

_MAX_VALUE_WIDTH = 60


@app.callback()
def main(
    ctx: typer.Context,
    backend: Annotated[
        str | None,
        typer.Option("--backend", "-b", help="Store backend (defaults to STASHKV_BACKEND)"),
    ] = None,
) -> None:
    """Configure logging and remember the selected backend."""
    from stashkv.core.config import get_settings
    from stashkv.core.logging import setup_logging

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    ctx.obj = {"backend": backend}


def _run(ctx: typer.Context, action: Callable[..., Awaitable[T]]) -> T:
    """Open the configured store, run *action* on it, and close it."""
    from stashkv.stores.factory import open_store_from_settings

    backend = (ctx.obj or {}).get("backend")

    async def _session() -> T:
        async with await open_store_from_settings(backend=backend) as store:
            return await action(store)

    try:
        return asyncio.run(_session())
    except (StashError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from None


def _render(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command(name="set")
def set_value(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key to write")],
    value: Annotated[str, typer.Argument(help="Value (stored UTF-8 encoded)")],
    ttl: Annotated[
        float,
        typer.Option("--ttl", "-t", help="Seconds to live; 0 uses the default, <0 never expires"),
    ] = 0,
) -> None:
    """Store VALUE under KEY."""
    _run(ctx, lambda store: store.set(key, value, ttl=ttl))
    typer.echo(f"Stored {key}")


@app.command()
def get(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key to read")],
) -> None:
    """Print the value stored under KEY."""
    value = _run(ctx, lambda store: store.get(key))
    if value is None:
        typer.echo(f"Key not found: {key}", err=True)
        raise typer.Exit(1)
    typer.echo(_render(value))


@app.command()
def delete(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key to delete")],
) -> None:
    """Remove KEY (absent keys are ignored)."""
    _run(ctx, lambda store: store.delete(key))
    typer.echo(f"Deleted {key}")


@app.command(name="list")
def list_entries(ctx: typer.Context) -> None:
    """Show every live entry."""
    from rich.console import Console
    from rich.table import Table

    entries = _run(ctx, lambda store: store.list())

    console = Console()
    if not entries:
        console.print("[dim]No entries.[/dim]")
        return

    table = Table(title=f"Entries ({len(entries)})")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_column("Bytes", justify="right")

    for key in sorted(entries):
        raw = entries[key]
        text = _render(raw)
        if len(text) > _MAX_VALUE_WIDTH:
            text = text[: _MAX_VALUE_WIDTH - 3] + "..."
        table.add_row(key, text, str(len(raw)))

    console.print(table)


@app.command()
def reset(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete every entry in the store."""
    if not yes:
        typer.confirm("Delete all entries?", abort=True)
    _run(ctx, lambda store: store.reset())
    typer.echo("Store reset.")


@app.command()
def info(ctx: typer.Context) -> None:
    """Show the store's backend, namespace and TTL settings."""
    from rich.console import Console
    from rich.table import Table

    async def _describe(store: Store) -> dict[str, object]:
        return store.describe()

    details = _run(ctx, _describe)

    table = Table(title="Store")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for name, value in details.items():
        table.add_row(name, str(value))
    Console().print(table)


@app.command()
def backends() -> None:
    """List the available backend names."""
    from stashkv.stores.factory import available_backends

    for name in available_backends():
        typer.echo(name)


@app.command()
def version() -> None:
    """Show version information."""
    from stashkv import __version__

    typer.echo(f"stashkv v{__version__}")
