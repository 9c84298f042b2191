"""
Root Typer application for the corpus CLI.

Document commands (``put``, ``get``, ``versions``, ``latest``, ``delete``)
take a full document path such as ``posts/1/3f2a...`` and operate on it
through the named store definition (``--store``, default ``posts``).
Backend selection comes from ``CORPUS_*`` settings, overridable with
``--backend`` / ``--data-dir``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from typer import Typer

from corpus.cli.utils import build_corpus, err_console, output_result, run
from corpus.core.logging import configure_logging
from corpus.core.result import Err, Ok
from corpus.core.settings import CorpusSettings
from corpus.store import Store

app = Typer(
    name="corpus",
    help="corpus: versioned, content-addressed document store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from corpus import __version__

        typer.echo(f"corpus {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    backend: str | None = typer.Option(None, "--backend", "-b", help="memory | file | cloud"),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="File backend root."),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """corpus CLI: put, read and list document versions."""
    overrides: dict[str, Any] = {}
    if backend is not None:
        overrides["backend"] = backend
    if data_dir is not None:
        overrides["data_dir"] = data_dir

    try:
        settings = CorpusSettings(**overrides)
    except ValidationError as e:
        err_console.print(f"[bold red]Config error[/bold red]: {e}")
        raise typer.Exit(code=2) from e

    configure_logging(level=settings.log_level, json_format=settings.log_json, stream=sys.stderr)
    if settings.backend == "memory":
        err_console.print(
            "[yellow]Warning[/yellow]: memory backend, nothing is kept after this command "
            "(use --backend file)"
        )
    ctx.obj = settings


def _store(ctx: typer.Context, store: str, path: str) -> Store[Any]:
    corpus = build_corpus(ctx.obj)
    try:
        bound = corpus.store(store, store_id=path)
    except KeyError as e:
        err_console.print(f"[bold red]Error[/bold red]: unknown store {store!r}")
        raise typer.Exit(code=2) from e
    try:
        bound.document_path()
    except ValueError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e}")
        raise typer.Exit(code=2) from e
    return bound


def _read_content(source: Path | None) -> Any:
    text = source.read_text(encoding="utf-8") if source else sys.stdin.read()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        err_console.print(f"[bold red]Error[/bold red] (invalid_content): not JSON: {e}")
        raise typer.Exit(code=1) from e


# ── Document commands ────────────────────────────────────────────────────


@app.command("put")
def put(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Document path, e.g. posts/1/<uuid>"),
    source: Path | None = typer.Argument(None, help="JSON file (default: stdin)"),
    parent: str | None = typer.Option(None, "--parent", "-p", help="Parent version hash"),
    store: str = typer.Option("posts", "--store", "-s"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Store a new version of a document."""
    content = _read_content(source)
    result = run(_store(ctx, store, path).put(content, parent))
    output_result(result, as_json=json_out, title="Stored")


@app.command("get")
def get(
    ctx: typer.Context,
    path: str = typer.Argument(...),
    version: str = typer.Argument(..., help="Version hash"),
    store: str = typer.Option("posts", "--store", "-s"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print the content of one version."""
    result = run(_store(ctx, store, path).get(version))
    output_result(result, as_json=json_out, title=version)


@app.command("versions")
def versions(
    ctx: typer.Context,
    path: str = typer.Argument(...),
    store: str = typer.Option("posts", "--store", "-s"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List versions of a document, newest first."""
    result = run(_store(ctx, store, path).list_versions())
    output_result(result, as_json=json_out, title=f"Versions of {path}")


@app.command("latest")
def latest(
    ctx: typer.Context,
    path: str = typer.Argument(...),
    store: str = typer.Option("posts", "--store", "-s"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print the newest version of a document."""
    result = run(_store(ctx, store, path).latest())
    output_result(
        result.map(lambda v: {**v.info.to_dict(), "content": v.content.model_dump(mode="json")}),
        as_json=json_out,
        title=f"Latest of {path}",
    )


@app.command("delete")
def delete(
    ctx: typer.Context,
    path: str = typer.Argument(...),
    store: str = typer.Option("posts", "--store", "-s"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Delete every version of a document."""
    if not yes and not typer.confirm(f"Delete all versions of {path}?"):
        raise typer.Exit(code=1)

    result = run(_store(ctx, store, path).delete())
    match result:
        case Ok():
            output_result(Ok({"path": path, "deleted": True}), as_json=json_out)
        case Err():
            output_result(result, as_json=json_out)


# ── Sub-command registration ─────────────────────────────────────────────

from corpus.cli.stores import app as stores_app  # noqa: E402

app.add_typer(stores_app, name="stores", help="Store definitions and catalog.")

__all__ = ["app"]
