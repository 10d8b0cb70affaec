"""SessionStore contract, run against the in-memory and the SQL store."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from models.store import IdentityExists, RecordNotFound, SwapConflict

EXPIRES = datetime(2040, 1, 1, tzinfo=timezone.utc)


def _close_to(a, b):
    return abs(a - b) < timedelta(seconds=1)


class TestIdentities:

    def test_create_and_find(self, store):
        identity_id = store.create_identity("alice", "hash-a", "a@x.com")
        assert isinstance(identity_id, uuid.UUID)

        identity = store.find_identity_by_username("alice")
        assert identity.id == identity_id
        assert identity.username == "alice"
        assert identity.email == "a@x.com"
        assert identity.created_at is not None

    def test_password_hash_is_fetched_by_id(self, store):
        identity_id = store.create_identity("alice", "hash-a", "a@x.com")
        assert store.fetch_password_hash(identity_id) == "hash-a"

    def test_duplicate_username(self, store):
        store.create_identity("alice", "hash-a", "a@x.com")
        with pytest.raises(IdentityExists):
            store.create_identity("alice", "hash-b", "b@x.com")

    def test_username_is_case_sensitive(self, store):
        store.create_identity("alice", "hash-a", "a@x.com")
        store.create_identity("Alice", "hash-b", "b@x.com")
        assert store.find_identity_by_username("Alice").email == "b@x.com"

    def test_unknown_username(self, store):
        with pytest.raises(RecordNotFound):
            store.find_identity_by_username("nobody")

    def test_unknown_identity_hash(self, store):
        with pytest.raises(RecordNotFound):
            store.fetch_password_hash(uuid.uuid4())


class TestSessions:

    @pytest.fixture
    def identity_id(self, store):
        return store.create_identity("alice", "hash-a", "a@x.com")

    def test_put_then_get(self, store, identity_id):
        store.put_session(identity_id, "rt-1", EXPIRES)
        record = store.get_session(identity_id)
        assert record.identity_id == identity_id
        assert record.refresh_token == "rt-1"
        assert _close_to(record.refresh_expires_at, EXPIRES)

    def test_put_replaces_existing_session(self, store, identity_id):
        store.put_session(identity_id, "rt-1", EXPIRES)
        store.put_session(identity_id, "rt-2", EXPIRES + timedelta(days=1))
        record = store.get_session(identity_id)
        assert record.refresh_token == "rt-2"
        assert _close_to(record.refresh_expires_at, EXPIRES + timedelta(days=1))

    def test_put_for_unknown_identity(self, store):
        with pytest.raises(RecordNotFound):
            store.put_session(uuid.uuid4(), "rt-1", EXPIRES)

    def test_get_missing_session(self, store, identity_id):
        with pytest.raises(RecordNotFound):
            store.get_session(identity_id)

    def test_compare_and_swap(self, store, identity_id):
        store.put_session(identity_id, "rt-1", EXPIRES)
        store.compare_and_swap_session(identity_id, "rt-1", "rt-2")
        record = store.get_session(identity_id)
        assert record.refresh_token == "rt-2"
        assert _close_to(record.refresh_expires_at, EXPIRES)

    def test_compare_and_swap_with_stale_token(self, store, identity_id):
        store.put_session(identity_id, "rt-1", EXPIRES)
        store.compare_and_swap_session(identity_id, "rt-1", "rt-2")
        with pytest.raises(SwapConflict):
            store.compare_and_swap_session(identity_id, "rt-1", "rt-3")
        assert store.get_session(identity_id).refresh_token == "rt-2"

    def test_compare_and_swap_without_session(self, store, identity_id):
        with pytest.raises(RecordNotFound):
            store.compare_and_swap_session(identity_id, "rt-1", "rt-2")

    def test_delete_is_idempotent(self, store, identity_id):
        store.put_session(identity_id, "rt-1", EXPIRES)
        store.delete_session(identity_id)
        store.delete_session(identity_id)
        store.delete_session(uuid.uuid4())
        with pytest.raises(RecordNotFound):
            store.get_session(identity_id)

    def test_put_after_delete(self, store, identity_id):
        store.put_session(identity_id, "rt-1", EXPIRES)
        store.delete_session(identity_id)
        store.put_session(identity_id, "rt-2", EXPIRES)
        assert store.get_session(identity_id).refresh_token == "rt-2"


class TestDBStorage:

    def test_one_row_per_identity(self, db_store):
        from models.auth_session import AuthSession

        identity_id = db_store.create_identity("alice", "hash-a", "a@x.com")
        db_store.put_session(identity_id, "rt-1", EXPIRES)
        db_store.put_session(identity_id, "rt-2", EXPIRES)

        rows = db_store.get_db_session().query(AuthSession).all()
        assert len(rows) == 1
        assert rows[0].user_id == str(identity_id)

    def test_timestamps_come_back_as_utc(self, db_store):
        identity_id = db_store.create_identity("alice", "hash-a", "a@x.com")
        db_store.put_session(identity_id, "rt-1", EXPIRES)
        record = db_store.get_session(identity_id)
        assert record.refresh_expires_at.tzinfo is not None
        assert record.updated_at.tzinfo is not None
