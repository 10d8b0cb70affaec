"""In-memory SessionStore, used by tests and local runs without a database."""
from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Tuple

from models.store import (
    Identity,
    IdentityExists,
    RecordNotFound,
    SessionRecord,
    SessionStore,
    SwapConflict,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStorage(SessionStore):
    """Dictionaries behind a single lock; every method is atomic."""

    def __init__(self):
        self._lock = threading.Lock()
        self._identities: Dict[uuid.UUID, Tuple[Identity, str]] = {}
        self._usernames: Dict[str, uuid.UUID] = {}
        self._sessions: Dict[uuid.UUID, SessionRecord] = {}

    def create_identity(self, username, password_hash, email):
        with self._lock:
            if username in self._usernames:
                raise IdentityExists(f"username {username!r} already taken")
            now = _now()
            identity = Identity(
                id=uuid.uuid4(),
                username=username,
                email=email,
                created_at=now,
                updated_at=now,
            )
            self._identities[identity.id] = (identity, password_hash)
            self._usernames[username] = identity.id
            return identity.id

    def find_identity_by_username(self, username):
        with self._lock:
            identity_id = self._usernames.get(username)
            if identity_id is None:
                raise RecordNotFound(f"no user {username!r}")
            return self._identities[identity_id][0]

    def fetch_password_hash(self, identity_id):
        with self._lock:
            entry = self._identities.get(identity_id)
            if entry is None:
                raise RecordNotFound(f"no user {identity_id}")
            return entry[1]

    def put_session(self, identity_id, refresh_token, refresh_expires_at):
        with self._lock:
            if identity_id not in self._identities:
                raise RecordNotFound(f"no user {identity_id}")
            now = _now()
            self._sessions[identity_id] = SessionRecord(
                identity_id=identity_id,
                refresh_token=refresh_token,
                refresh_expires_at=refresh_expires_at,
                created_at=now,
                updated_at=now,
            )

    def get_session(self, identity_id):
        with self._lock:
            record = self._sessions.get(identity_id)
            if record is None:
                raise RecordNotFound(f"no session for {identity_id}")
            return record

    def compare_and_swap_session(self, identity_id, expected_token, new_token):
        with self._lock:
            record = self._sessions.get(identity_id)
            if record is None:
                raise RecordNotFound(f"no session for {identity_id}")
            if record.refresh_token != expected_token:
                raise SwapConflict(f"session for {identity_id} was rotated concurrently")
            self._sessions[identity_id] = replace(record, refresh_token=new_token, updated_at=_now())

    def delete_session(self, identity_id):
        with self._lock:
            self._sessions.pop(identity_id, None)
