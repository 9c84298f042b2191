"""
CLI: ``corpus stores``: store definitions and the backend catalog.
"""

from __future__ import annotations

import typer

from corpus.cli.utils import build_corpus, output_result, run
from corpus.core.result import Ok

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_stores(
    ctx: typer.Context,
    catalog: bool = typer.Option(False, "--catalog", help="Read the backend catalog instead."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List defined stores (or the catalog recorded in the backend)."""
    corpus = build_corpus(ctx.obj)
    if catalog:
        output_result(run(corpus.catalog()), as_json=json_out, title="Catalog")
        return

    rows = [
        {"name": d.name, "codec": d.codec.name, "content_type": d.codec.content_type}
        for d in corpus.definitions.values()
    ]
    output_result(Ok(rows), as_json=json_out, title="Stores")


@app.command("register")
def register(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Record the defined stores in the backend catalog."""
    corpus = build_corpus(ctx.obj)
    result = run(corpus.register_stores())
    output_result(result.map(lambda n: {"registered": n}), as_json=json_out, title="Registered")
