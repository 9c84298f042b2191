"""
CLI utility helpers: output formatting and corpus construction.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from dataclasses import asdict
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from corpus.backends import create_backend
from corpus.core.errors import ConfigError, CorpusError
from corpus.core.result import Err, Result
from corpus.core.settings import CorpusSettings
from corpus.posts import posts_store_definition
from corpus.registry import Corpus

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


# ── Corpus helper ────────────────────────────────────────────────────────


def build_corpus(settings: CorpusSettings) -> Corpus:
    """Corpus over the configured backend with the built-in store definitions."""
    try:
        backend = create_backend(settings)
    except ConfigError as e:
        err_console.print(f"[bold red]Config error[/bold red] ({e.key}): {e}")
        raise typer.Exit(code=2) from e
    return Corpus.builder().with_backend(backend).with_store(posts_store_definition).build()


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", exclude_none=True)
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_result(
    result: Result[Any],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render a ``Result`` to the terminal. Errors exit with code 1."""
    if isinstance(result, Err):
        error = result.error
        if as_json:
            console.print_json(json.dumps(result.to_dict(), default=str))
        elif isinstance(error, CorpusError):
            err_console.print(f"[bold red]Error[/bold red] ({error.kind.value}): {error.message}")
        else:
            err_console.print(f"[bold red]Error[/bold red]: {error}")
        raise typer.Exit(code=1)

    data = result.value

    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
