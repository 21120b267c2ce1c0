"""
Tests for the persisted session store.
"""
from planner.session.store import SessionStore, USER_KEY


def test_tokens_round_trip(store):
    store.save_tokens("access-1", "refresh-1")

    assert store.access_token == "access-1"
    assert store.refresh_token == "refresh-1"


def test_missing_refresh_token_keeps_previous(store):
    store.save_tokens("access-1", "refresh-1")
    store.save_tokens("access-2")

    assert store.access_token == "access-2"
    assert store.refresh_token == "refresh-1"


def test_values_survive_reopen(tmp_path):
    path = str(tmp_path / "nested" / "session.db")
    SessionStore(path).save_tokens("access-1", "refresh-1")

    reopened = SessionStore(path)
    assert reopened.access_token == "access-1"


def test_clear_removes_all_three_keys(store):
    store.save_tokens("access-1", "refresh-1")
    store.save_user({"_id": "u1", "name": "Lan"})
    store.set("theme", "dark")

    store.clear()

    assert store.access_token is None
    assert store.refresh_token is None
    assert store.cached_user() is None
    # Unrelated keys are left alone
    assert store.get("theme") == "dark"


def test_cached_user_ignores_garbage(store):
    store.set(USER_KEY, "{not json")
    assert store.cached_user() is None

    store.set(USER_KEY, '["a", "list"]')
    assert store.cached_user() is None


def test_cached_user_round_trip(store):
    store.save_user({"_id": "u1", "email": "lan@example.com"})
    assert store.cached_user() == {"_id": "u1", "email": "lan@example.com"}
