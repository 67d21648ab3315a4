"""SHA-256 hashing for scene identity and artifact provenance.

Provides:
    - sha256_bytes(): Hash a raw byte buffer (pixel buffers, encoded scenes)
    - sha256_string(): Hash UTF-8 text
    - canonical_json(): Deterministic JSON encoding used before hashing
    - hash_dict(): Hash a JSON-compatible mapping via canonical_json()
    - sha256_file(): Hash file contents (golden PNGs, bundles)

Used by the audit layer:
    - scene_hash in RenderMetadata (same scene encoding → same hash)
    - Golden store bookkeeping (reference PNG digests in logs)

Deterministic hashing:
    - Key order is preserved, not sorted: element order is part of scene identity
    - Separators are fixed (no whitespace) so formatting never changes the digest
    - NaN/Infinity are encoded as JSON constants rather than rejected
    - Results are hex strings (64 chars)

Hashes are identity hints, not cryptographic guarantees.

Usage:
    from src.utils import hashing
    digest = hashing.hash_dict(scene.to_dict())

Note: Module named `hashing.py` to avoid shadowing builtin `hash()`.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping, Union


def sha256_bytes(data: Union[bytes, bytearray, memoryview]) -> str:
    """Compute SHA-256 hash of a byte buffer.

    Parameters
    ----------
    data : bytes-like
        Buffer to hash

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)
    """
    sha256 = hashlib.sha256()
    sha256.update(data)
    return sha256.hexdigest()


def sha256_string(s: str) -> str:
    """Compute SHA-256 hash of string.

    Parameters
    ----------
    s : str
        String to hash

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)
    """
    return sha256_bytes(s.encode('utf-8'))


def canonical_json(obj: Any) -> str:
    """Encode a JSON-compatible object deterministically.

    Parameters
    ----------
    obj : Any
        dicts, lists, tuples, str, int, float, bool, None

    Returns
    -------
    str
        Compact JSON text

    Notes
    -----
    Insertion order of keys is kept. Callers that need order independence
    must sort before encoding (see hash_dict(sort_keys=True)).
    """
    return json.dumps(obj, separators=(',', ':'), ensure_ascii=True, allow_nan=True)


def hash_dict(d: Mapping[str, Any], sort_keys: bool = False) -> str:
    """Compute SHA-256 hash of a mapping's canonical JSON encoding.

    Parameters
    ----------
    d : Mapping[str, Any]
        Mapping to hash (must be JSON-serializable)
    sort_keys : bool
        Sort keys recursively before encoding, default False

    Returns
    -------
    str
        SHA-256 hex digest

    Examples
    --------
    >>> hash_dict({"a": 1, "b": 2}, sort_keys=True) == hash_dict({"b": 2, "a": 1}, sort_keys=True)
    True
    """
    if sort_keys:
        text = json.dumps(d, sort_keys=True, separators=(',', ':'), allow_nan=True)
    else:
        text = canonical_json(d)
    return sha256_string(text)


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)

    return sha256.hexdigest()
