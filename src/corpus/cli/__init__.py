"""
CLI layer for corpus.

Terminal transport only: argument parsing, coloured output and table
formatting. Store semantics live in ``corpus.store`` / ``corpus.registry``.

Entry point::

    corpus --help
"""

from corpus.cli.app import app

__all__ = ["app"]
