"""
Utility functions for the stamp gateway.

Provides canonical JSON serialization and document fingerprinting.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Union

CHUNK_SIZE = 1 << 16


def canonicalize(obj: Any) -> bytes:
    """
    Convert object to canonical JSON bytes.

    Canonical JSON:
    - Lexicographically sorted keys
    - No whitespace
    - UTF-8 encoded
    """
    s = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return s.encode('utf-8')


def fingerprint_bytes(data: Union[bytes, str]) -> str:
    """Return the 0x-prefixed SHA-256 fingerprint of raw bytes."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return "0x" + hashlib.sha256(data).hexdigest()


def fingerprint_file(path: Union[str, Path]) -> str:
    """Fingerprint a file's raw bytes, reading it in chunks."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return "0x" + h.hexdigest()


def fingerprint_json(obj: Any) -> str:
    """Fingerprint a JSON document in canonical form, so key order does not matter."""
    return fingerprint_bytes(canonicalize(obj))
