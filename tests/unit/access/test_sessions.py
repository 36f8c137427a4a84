"""Tests for the remote-login session store."""

from site_friends.access.sessions import SessionStore


def test_create_and_get():
    store = SessionStore(ttl_seconds=60)
    session_id = store.create(7)

    assert store.get(session_id) == 7
    assert store.get("unknown") is None
    assert store.get(None) is None


def test_discard_account_ends_all_its_sessions():
    store = SessionStore(ttl_seconds=60)
    first = store.create(1)
    second = store.create(1)
    other = store.create(2)

    store.discard_account(1)

    assert store.get(first) is None
    assert store.get(second) is None
    assert store.get(other) == 2
