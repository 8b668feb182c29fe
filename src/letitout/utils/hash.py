# src/letitout/utils/hash.py
"""Hashing helpers built on BLAKE3."""

from __future__ import annotations

import json
from typing import Any

from blake3 import blake3


def blake3_digest(data: bytes) -> bytes:
    """Return the byte digest of the supplied data."""
    return blake3(data).digest()


def blake3_hexdigest(data: bytes) -> str:
    """Return the hexadecimal digest of the supplied data."""
    return blake3(data).hexdigest()


def canonical_json(value: Any) -> bytes:
    """Serialize ``value`` deterministically (sorted keys, no whitespace)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


def digest_json(value: Any) -> str:
    """Return the BLAKE3 hex digest of the canonical JSON form of ``value``."""
    return blake3_hexdigest(canonical_json(value))
