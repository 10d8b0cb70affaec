"""
Session store contract.

The coordinator only talks to persistence through SessionStore. There is at
most one session per identity: put_session replaces whatever was there, and
compare_and_swap_session rotates the stored refresh token atomically.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


class StorageError(Exception):
    pass


class IdentityExists(StorageError):
    pass


class RecordNotFound(StorageError):
    pass


class SwapConflict(StorageError):
    pass


class StoreError(StorageError):
    """Any failure of the backing store unrelated to the caller's input."""


@dataclass(frozen=True)
class Identity:
    id: uuid.UUID
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class SessionRecord:
    identity_id: uuid.UUID
    refresh_token: str
    refresh_expires_at: datetime
    created_at: datetime
    updated_at: datetime


class SessionStore(ABC):

    @abstractmethod
    def create_identity(self, username: str, password_hash: str, email: str) -> uuid.UUID:
        """Insert a user; IdentityExists on a taken username."""

    @abstractmethod
    def find_identity_by_username(self, username: str) -> Identity:
        """RecordNotFound when no such username."""

    @abstractmethod
    def fetch_password_hash(self, identity_id: uuid.UUID) -> str:
        """RecordNotFound when no such identity."""

    @abstractmethod
    def put_session(self, identity_id: uuid.UUID, refresh_token: str, refresh_expires_at: datetime) -> None:
        """Insert or replace the session of an identity; RecordNotFound for an unknown identity."""

    @abstractmethod
    def get_session(self, identity_id: uuid.UUID) -> SessionRecord:
        """RecordNotFound when the identity has no session."""

    @abstractmethod
    def compare_and_swap_session(self, identity_id: uuid.UUID, expected_token: str, new_token: str) -> None:
        """
        Replace the stored refresh token only if it still equals expected_token.
        SwapConflict if it does not, RecordNotFound if there is no session.
        """

    @abstractmethod
    def delete_session(self, identity_id: uuid.UUID) -> None:
        """Remove the session; a missing session is not an error."""

    def close(self) -> None:
        """Release per-request resources."""
