#!/usr/bin/env python3
"""
Tests for the sessions module
"""

import threading
import time

from sharge.sessions import SessionStore


def test_session_lifecycle():
    """create -> lookup -> destroy -> lookup"""
    print("\n[TEST 1] Testing session lifecycle...")

    store = SessionStore()
    token = store.create("10.0.0.5")

    assert store.lookup(token) == "10.0.0.5"
    store.destroy(token)
    assert store.lookup(token) is None
    print("  ✓ Lifecycle verified")


def test_unknown_tokens():
    """Never-issued, empty and missing tokens are not found"""
    store = SessionStore()
    store.create("10.0.0.5")

    assert store.lookup("sess_0_deadbeef") is None
    assert store.lookup("") is None
    assert store.lookup(None) is None

    # Destroying unknown tokens is harmless
    store.destroy("sess_0_deadbeef")
    store.destroy(None)
    assert len(store) == 1


def test_tokens_are_distinct():
    store = SessionStore()
    tokens = {store.create("user") for _ in range(1000)}
    assert len(tokens) == 1000
    assert all(t.startswith("sess_") for t in tokens)


def test_no_expiry_by_default():
    store = SessionStore()
    token = store.create("user")
    store._sessions[token].created_at -= 10 * 365 * 24 * 3600
    assert store.lookup(token) == "user"


def test_max_age_expires_sessions():
    """Expired sessions are dropped on lookup"""
    store = SessionStore(max_age=60)
    token = store.create("user")
    assert store.lookup(token) == "user"

    store._sessions[token].created_at = time.time() - 61
    assert store.lookup(token) is None
    assert len(store) == 0


def test_concurrent_access():
    """Parallel create/lookup/destroy keeps the table consistent"""
    print("\n[TEST 2] Testing concurrent access...")

    store = SessionStore()
    errors = []

    def worker(n: int):
        for i in range(200):
            identity = f"user-{n}-{i}"
            token = store.create(identity)
            if store.lookup(token) != identity:
                errors.append(identity)
            store.destroy(token)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store) == 0
    print("  ✓ 1600 sessions created and destroyed across 8 threads")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Session Store Test Suite")
    print("=" * 60)

    test_session_lifecycle()
    test_unknown_tokens()
    test_tokens_are_distinct()
    test_no_expiry_by_default()
    test_max_age_expires_sessions()
    test_concurrent_access()

    print("\n" + "=" * 60)
    print("✓ All tests passed!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    exit(main())
