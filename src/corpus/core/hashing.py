"""
Content hashing for version ids.

A version id is the SHA-256 hex digest of the exact bytes a codec produced
and the backend stores. Hashing the serialized bytes (never the in-memory
value) is what makes ``get(put(x).hash)`` return exactly ``x`` and what makes
identical content collapse into one version.

Manifesto:
    Version ids must be:
    - **Deterministic:** Same bytes → same id, always
    - **Fixed length:** 64 lowercase hex characters
    - **Collision-resistant:** Different content never shares an id
    - **Backend-agnostic:** Memory, File and Cloud backends agree on ids

Examples:
    >>> compute_version_hash(b'{"title":"V1"}') == compute_version_hash(b'{"title":"V1"}')
    True
    >>> len(compute_version_hash(b""))
    64

Tags:
    hashing, content-addressing, deduplication, corpus
"""

import hashlib
import re

VERSION_HASH_LENGTH = 64

_VERSION_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


def compute_version_hash(data: bytes) -> str:
    """
    Compute the version id for serialized content.

    Args:
        data: Exact bytes that will be written to the backend

    Returns:
        64-char lowercase hex SHA-256 digest
    """
    return hashlib.sha256(data).hexdigest()


def is_version_hash(value: str) -> bool:
    """True if ``value`` has the shape of a version id."""
    return bool(_VERSION_HASH_RE.match(value))
