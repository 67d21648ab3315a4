"""Test hashing functions for scene identity and provenance.

Tests for src.utils.hashing:
    - sha256_bytes() / sha256_string() produce 64-char hex digests
    - canonical_json() is compact and keeps key order
    - hash_dict() sort_keys option
    - sha256_file() matches sha256_bytes() of the content

Known hash test:
    - sha256("") == e3b0c442...b855

Run:
    pytest tests/test_hash.py -v
"""

import pytest

from src.utils import hashing

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def test_known_empty_hash():
    assert hashing.sha256_bytes(b"") == EMPTY_SHA256
    assert hashing.sha256_string("") == EMPTY_SHA256


def test_string_hash_is_utf8():
    assert hashing.sha256_string("é") == hashing.sha256_bytes("é".encode("utf-8"))


def test_canonical_json_is_compact_and_ordered():
    assert hashing.canonical_json({"b": [1, 2], "a": None}) == '{"b":[1,2],"a":null}'


def test_canonical_json_allows_nan():
    assert hashing.canonical_json([float("nan"), float("inf")]) == "[NaN,Infinity]"


def test_hash_dict_order_sensitivity():
    a = {"x": 1, "y": 2}
    b = {"y": 2, "x": 1}

    assert hashing.hash_dict(a) != hashing.hash_dict(b)
    assert hashing.hash_dict(a, sort_keys=True) == hashing.hash_dict(b, sort_keys=True)


def test_sha256_file(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"frustum" * 1000)

    assert hashing.sha256_file(path, chunk_size=64) == hashing.sha256_bytes(b"frustum" * 1000)


def test_sha256_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        hashing.sha256_file(tmp_path / "nope.bin")
