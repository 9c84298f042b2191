"""Environment-driven settings for corpus.

Selects and configures the storage backend. Values come from ``CORPUS_*``
environment variables or a ``.env`` file.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not on first write
    - **Environment-driven:** ``CORPUS_BACKEND=cloud CORPUS_S3_BUCKET=...``
    - **Sensible defaults:** Memory backend works out of the box for tests

Examples:
    >>> from corpus.core.settings import CorpusSettings
    >>> CorpusSettings(backend="file", data_dir="/tmp/corpus").backend
    'file'

Tags:
    settings, configuration, pydantic, environment, corpus
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CorpusSettings(BaseSettings):
    """Backend selection and connection settings.

    Fields
    ──────
    backend        : ``memory`` | ``file`` | ``cloud``
    data_dir       : Root directory of the File backend
    s3_*           : Blob bucket of the Cloud-pair backend
    metadata_url   : SQLAlchemy URL of the Cloud-pair metadata store
    log_level      : Structlog log level
    log_json       : Force JSON (True) / console (False) rendering, None = auto
    """

    model_config = SettingsConfigDict(
        env_prefix="CORPUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["memory", "file", "cloud"] = "memory"

    # ── File backend ─────────────────────────────────────────────
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".corpus",
        description="Root directory of the File backend",
    )

    # ── Cloud-pair backend ───────────────────────────────────────
    s3_bucket: str | None = None
    s3_endpoint: str | None = None
    s3_region: str = "us-east-1"
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    metadata_url: str = "sqlite:///corpus_metadata.db"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
