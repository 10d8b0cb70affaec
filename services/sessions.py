"""
Session lifecycle: register, login, validate, issue, revoke, refresh.

State per identity lives entirely in the store. An identity either has one
session record (active) or none (no session / revoked). Login and explicit
issuance replace the record; refresh rotates its token in place; revoke
deletes it.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from models.store import (
    IdentityExists,
    RecordNotFound,
    SessionStore,
    StorageError,
    SwapConflict,
)
from services.errors import (
    ERR_INVALID_CREDENTIALS,
    ERR_SESSION_NOT_FOUND,
    AlreadyExists,
    Conflict,
    Internal,
    NotFound,
    PolicyViolation,
    Unauthenticated,
)
from utils.security import check_password_policy, hash_password, verify_password
from utils.tokens import ACCESS, REFRESH, TokenError, TokenPair, TokenService

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_WINDOW = timedelta(days=30)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionLifecycle:
    """Coordinates the password gate, the token service and the session store.

    Holds no mutable state of its own, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        store: SessionStore,
        tokens: TokenService,
        refresh_window: timedelta = DEFAULT_REFRESH_WINDOW,
        clock: Callable[[], datetime] = _now,
    ):
        self.store = store
        self.tokens = tokens
        self.refresh_window = refresh_window
        self._clock = clock

    def register(self, username: str, password: str, email: str) -> uuid.UUID:
        ok, reason = check_password_policy(password)
        if not ok:
            raise PolicyViolation(reason)

        pw_hash = hash_password(password)
        try:
            identity_id = self.store.create_identity(username, pw_hash, email)
        except IdentityExists:
            logger.info("register: username %r already taken", username)
            raise AlreadyExists()
        except StorageError:
            logger.exception("register: failed to create user %r", username)
            raise Internal()

        logger.info("register: created user %s", identity_id)
        return identity_id

    def login(self, username: str, password: str) -> TokenPair:
        try:
            identity = self.store.find_identity_by_username(username)
            pw_hash = self.store.fetch_password_hash(identity.id)
        except RecordNotFound:
            logger.warning("login: no user %r", username)
            raise NotFound(ERR_INVALID_CREDENTIALS)
        except StorageError:
            logger.exception("login: failed to load user %r", username)
            raise Internal()

        if not verify_password(password, pw_hash):
            logger.warning("login: invalid password for user %s", identity.id)
            raise Unauthenticated(ERR_INVALID_CREDENTIALS)

        tokens = self._issue(identity.id)
        try:
            self.store.put_session(identity.id, tokens.refresh_token, self._clock() + self.refresh_window)
        except StorageError:
            logger.exception("login: failed to store session for user %s", identity.id)
            raise Internal()

        logger.info("login: new session for user %s", identity.id)
        return tokens

    def validate(self, access_token: str) -> uuid.UUID:
        try:
            valid = self.tokens.verify(access_token, kind=ACCESS)
        except TokenError as exc:
            logger.warning("validate: rejected access token: %s", exc)
            raise Unauthenticated()
        if not valid:
            logger.info("validate: access token expired")
            raise Unauthenticated()

        try:
            claims = self.tokens.extract_claims(access_token)
        except TokenError as exc:
            logger.warning("validate: malformed claims: %s", exc)
            raise Unauthenticated()

        try:
            self.store.get_session(claims.identity)
        except RecordNotFound:
            logger.info("validate: no session for user %s", claims.identity)
            raise Unauthenticated()
        except StorageError:
            logger.exception("validate: failed to read session for user %s", claims.identity)
            raise Internal()

        return claims.identity

    def issue_for_identity(self, identity_id: uuid.UUID) -> TokenPair:
        tokens = self._issue(identity_id)
        try:
            self.store.put_session(identity_id, tokens.refresh_token, self._clock() + self.refresh_window)
        except RecordNotFound:
            logger.warning("new session: no user %s", identity_id)
            raise NotFound()
        except StorageError:
            logger.exception("new session: failed to store session for user %s", identity_id)
            raise Internal()

        logger.info("new session: issued for user %s", identity_id)
        return tokens

    def revoke(self, identity_id: uuid.UUID) -> None:
        try:
            self.store.delete_session(identity_id)
        except StorageError:
            logger.exception("revoke: failed to delete session for user %s", identity_id)
            raise Internal()
        logger.info("revoke: session removed for user %s", identity_id)

    def refresh(self, access_token: str, refresh_token: str) -> TokenPair:
        """
        Rotate the session's refresh token.

        Nothing is written until the final compare-and-swap, so any earlier
        failure leaves the stored session untouched.
        """
        try:
            valid = self.tokens.verify(refresh_token, kind=REFRESH)
        except TokenError as exc:
            logger.warning("refresh: rejected refresh token: %s", exc)
            raise Unauthenticated()
        if not valid:
            logger.info("refresh: refresh token expired")
            raise Unauthenticated()

        try:
            access_claims = self.tokens.extract_claims(access_token)
            refresh_claims = self.tokens.extract_claims(refresh_token)
        except TokenError as exc:
            logger.warning("refresh: malformed claims: %s", exc)
            raise Unauthenticated()

        if access_claims.kind != ACCESS:
            logger.warning("refresh: access slot holds a %s token", access_claims.kind)
            raise Unauthenticated()
        if access_claims.identity != refresh_claims.identity:
            logger.warning(
                "refresh: identity mismatch between access (%s) and refresh (%s) tokens",
                access_claims.identity,
                refresh_claims.identity,
            )
            raise Unauthenticated()

        identity_id = refresh_claims.identity
        try:
            record = self.store.get_session(identity_id)
        except RecordNotFound:
            logger.info("refresh: no session for user %s", identity_id)
            raise NotFound(ERR_SESSION_NOT_FOUND)
        except StorageError:
            logger.exception("refresh: failed to read session for user %s", identity_id)
            raise Internal()

        if record.refresh_token != refresh_token:
            logger.warning("refresh: stale or replayed refresh token for user %s", identity_id)
            raise Unauthenticated()
        if record.refresh_expires_at <= self._clock():
            logger.info("refresh: session window closed for user %s", identity_id)
            raise Unauthenticated()

        tokens = self._issue(identity_id)
        try:
            self.store.compare_and_swap_session(identity_id, refresh_token, tokens.refresh_token)
        except SwapConflict:
            logger.warning("refresh: lost rotation race for user %s", identity_id)
            raise Conflict()
        except RecordNotFound:
            logger.info("refresh: session revoked during rotation for user %s", identity_id)
            raise NotFound(ERR_SESSION_NOT_FOUND)
        except StorageError:
            logger.exception("refresh: failed to rotate session for user %s", identity_id)
            raise Internal()

        logger.info("refresh: rotated session for user %s", identity_id)
        return tokens

    def _issue(self, identity_id: uuid.UUID) -> TokenPair:
        try:
            return self.tokens.issue(identity_id)
        except Exception:
            logger.exception("failed to sign tokens for user %s", identity_id)
            raise Internal()
