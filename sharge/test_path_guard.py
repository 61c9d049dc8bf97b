#!/usr/bin/env python3
"""
Tests for the path_guard module
"""

import os
import tempfile

import pytest

from sharge.errors import InvalidPathError
from sharge.path_guard import resolve, sanitize_name, to_relative


def test_resolve_inside_root():
    """Paths under root resolve to absolute paths prefixed by root"""
    print("\n[TEST 1] Testing resolution inside root...")

    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)

        for relative in ["a.txt", "docs/b.txt", "docs/../c.txt", "./d/e/f", "x/./y/../z.md"]:
            resolved = resolve(root, relative)
            assert resolved.startswith(root + os.sep), resolved
            assert os.path.isabs(resolved)

        assert resolve(root, "docs/../c.txt") == os.path.join(root, "c.txt")
        print("  ✓ Inside paths resolved")


def test_resolve_rejects_escapes():
    """Any number of .. segments leaving root is rejected"""
    print("\n[TEST 2] Testing traversal rejection...")

    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)

        for relative in ["..", "../x", "../../etc/passwd", "a/../../b", "a/b/../../../c", "/../x", "//../../etc"]:
            with pytest.raises(InvalidPathError):
                resolve(root, relative)
        print("  ✓ Escapes rejected")


def test_resolve_leading_slash_stays_under_root():
    """A leading slash is relative to root, not to the filesystem"""
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)

        assert resolve(root, "/etc/passwd") == os.path.join(root, "etc", "passwd")
        assert resolve(root, "/docs/a.txt") == os.path.join(root, "docs", "a.txt")
        assert resolve(root, "//newdir") == os.path.join(root, "newdir")

        with pytest.raises(InvalidPathError):
            resolve(root, "/")


def test_resolve_rejects_root_itself():
    """Root itself is not strictly inside root"""
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        for relative in ["", ".", "a/.."]:
            with pytest.raises(InvalidPathError):
                resolve(root, relative)


def test_resolve_rejects_sibling_with_shared_prefix():
    """A sibling directory whose name starts like root is outside root"""
    print("\n[TEST 3] Testing sibling prefix rejection...")

    with tempfile.TemporaryDirectory() as tmp:
        base = os.path.realpath(tmp)
        root = os.path.join(base, "data")
        os.makedirs(os.path.join(base, "data-old"))
        os.makedirs(root)

        with pytest.raises(InvalidPathError):
            resolve(root, "../data-old/secret.txt")
        print("  ✓ Sibling rejected")


def test_resolve_rejects_null_byte():
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(InvalidPathError):
            resolve(os.path.realpath(tmp), "a\x00b")


def test_to_relative_uses_forward_slashes():
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        assert to_relative(root, os.path.join(root, "b", "c.txt")) == "b/c.txt"


def test_sanitize_name():
    """Filenames reduce to a base name or are rejected"""
    print("\n[TEST 4] Testing filename sanitization...")

    assert sanitize_name("report.txt") == "report.txt"
    assert sanitize_name("  report.txt  ") == "report.txt"
    assert sanitize_name("dir/sub/report.txt") == "report.txt"
    assert sanitize_name("name. . ") == "name"
    assert sanitize_name(".env") == ".env"

    for bad in ["../../etc/passwd", "  .. ", ".", "", "   ", "...", "dir/.."]:
        assert sanitize_name(bad) == "", bad
    print("  ✓ Names sanitized")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Path Guard Test Suite")
    print("=" * 60)

    test_resolve_inside_root()
    test_resolve_rejects_escapes()
    test_resolve_leading_slash_stays_under_root()
    test_resolve_rejects_root_itself()
    test_resolve_rejects_sibling_with_shared_prefix()
    test_resolve_rejects_null_byte()
    test_to_relative_uses_forward_slashes()
    test_sanitize_name()

    print("\n" + "=" * 60)
    print("✓ All tests passed!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    exit(main())
