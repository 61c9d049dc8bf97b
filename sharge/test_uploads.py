#!/usr/bin/env python3
"""
Tests for the uploads module
"""

import asyncio
import os
import tempfile
from itertools import islice

import pytest

from sharge.errors import InvalidPathError, NotFoundError
from sharge.uploads import candidate_names, split_extension, store


async def chunks_of(data: bytes, size: int = 4):
    for i in range(0, len(data), size):
        yield data[i:i + size]


def test_split_extension():
    assert split_extension("report.txt") == ("report", ".txt")
    assert split_extension("archive.tar.gz") == ("archive.tar", ".gz")
    assert split_extension("README") == ("README", "")
    assert split_extension(".bashrc") == (".bashrc", "")


def test_candidate_names():
    assert list(islice(candidate_names("report.txt"), 3)) == [
        "report.txt", "report (1).txt", "report (2).txt"
    ]
    assert list(islice(candidate_names(".env"), 2)) == [".env", ".env (1)"]


def test_store_writes_content():
    """Uploaded bytes land verbatim under the sanitized name"""
    print("\n[TEST 1] Testing upload storage...")

    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        data = b"Hello, SHARGE! " * 100

        path = asyncio.run(store(root, "", "  greeting.txt ", chunks_of(data)))

        assert path == os.path.join(root, "greeting.txt")
        with open(path, 'rb') as f:
            assert f.read() == data
        print(f"  ✓ Stored {len(data)} bytes")


def test_store_resolves_collisions():
    """Repeated uploads of one name get increasing counters"""
    print("\n[TEST 2] Testing collision resolution...")

    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)

        names = []
        for i in range(3):
            path = asyncio.run(store(root, "", "report.txt", chunks_of(f"v{i}".encode())))
            names.append(os.path.basename(path))

        assert names == ["report.txt", "report (1).txt", "report (2).txt"]
        with open(os.path.join(root, "report.txt"), 'rb') as f:
            assert f.read() == b"v0"
        with open(os.path.join(root, "report (2).txt"), 'rb') as f:
            assert f.read() == b"v2"
        print(f"  ✓ Names: {names}")


def test_store_into_subdirectory():
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        os.makedirs(os.path.join(root, "docs"))

        path = asyncio.run(store(root, "docs", "c:\\fakepath\\notes.md", chunks_of(b"# notes")))
        assert path == os.path.join(root, "docs", "notes.md")


def test_store_rejects_bad_names():
    """Names that sanitize to nothing are refused before any write"""
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)

        for bad in ["../../etc/passwd", "  .. ", ".", ""]:
            with pytest.raises(InvalidPathError):
                asyncio.run(store(root, "", bad, chunks_of(b"x")))
        assert os.listdir(root) == []


def test_store_rejects_escaping_directory():
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        with pytest.raises(InvalidPathError):
            asyncio.run(store(root, "../elsewhere", "a.txt", chunks_of(b"x")))


def test_store_missing_directory():
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        with pytest.raises(NotFoundError):
            asyncio.run(store(root, "nope", "a.txt", chunks_of(b"x")))


def test_concurrent_uploads_get_distinct_names():
    """Exclusive create keeps simultaneous uploads from sharing a name"""
    print("\n[TEST 3] Testing concurrent uploads...")

    async def upload_many(root: str):
        return await asyncio.gather(*[
            store(root, "", "same.bin", chunks_of(bytes([i]) * 64))
            for i in range(10)
        ])

    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        paths = asyncio.run(upload_many(root))

        assert len(set(paths)) == 10
        assert len(os.listdir(root)) == 10
        print("  ✓ 10 concurrent uploads stored under distinct names")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Upload Resolver Test Suite")
    print("=" * 60)

    test_split_extension()
    test_candidate_names()
    test_store_writes_content()
    test_store_resolves_collisions()
    test_store_into_subdirectory()
    test_store_rejects_bad_names()
    test_store_rejects_escaping_directory()
    test_store_missing_directory()
    test_concurrent_uploads_get_distinct_names()

    print("\n" + "=" * 60)
    print("✓ All tests passed!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    exit(main())
