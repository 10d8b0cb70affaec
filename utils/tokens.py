"""
Token service:
- signs access and refresh JWTs with an asymmetric private key (RS256 by default)
- verifies them with the matching public key
- extracts identity claims, also from tokens that have already expired

Access and refresh tokens share one claim shape; the "type" claim tells them apart.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt

ACCESS = "access"
REFRESH = "refresh"
TOKEN_KINDS = (ACCESS, REFRESH)

DEFAULT_ISSUER = "session-auth"


class TokenError(Exception):
    pass


class InvalidToken(TokenError):
    """Signature does not verify, token cannot be decoded, or kind is wrong."""


class MalformedToken(TokenError):
    """Signature verifies but the claims are unusable."""


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    identity: uuid.UUID
    kind: str
    expires_at: datetime
    jti: Optional[str] = None


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Mints and checks bearer tokens. Immutable after construction."""

    def __init__(
        self,
        private_key,
        public_key,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        *,
        algorithm: str = "RS256",
        issuer: str = DEFAULT_ISSUER,
        clock: Callable[[], datetime] = _now,
    ):
        self._private_key = private_key
        self._public_key = public_key
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._algorithm = algorithm
        self._issuer = issuer
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh_ttl

    def issue(self, identity: uuid.UUID) -> TokenPair:
        """Sign a fresh access/refresh pair for an identity."""
        return TokenPair(
            access_token=self._new_token(identity, ACCESS, self._access_ttl),
            refresh_token=self._new_token(identity, REFRESH, self._refresh_ttl),
        )

    def verify(self, token: str, kind: Optional[str] = None) -> bool:
        """
        True when the signature verifies and exp is still in the future, i.e.
        for iat <= now < iat + ttl where iat is the whole second of issuance.
        An expired but genuine token gives False; a forged, undecodable or
        wrong-kind token raises InvalidToken.
        """
        decoded = self._decode(token)
        if kind is not None and decoded.get("type") != kind:
            raise InvalidToken("Wrong token type")
        exp = decoded.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidToken("Token has no usable exp claim")
        return exp > self._clock().timestamp()

    def extract_claims(self, token: str) -> TokenClaims:
        """
        Read identity claims without checking expiry.
        The signature must still verify; otherwise MalformedToken.
        """
        try:
            decoded = self._decode(token)
        except InvalidToken as exc:
            raise MalformedToken(str(exc)) from exc

        sub = decoded.get("sub")
        if not isinstance(sub, str):
            raise MalformedToken("invalid token claims")
        try:
            identity = uuid.UUID(sub)
        except ValueError as exc:
            raise MalformedToken(f"invalid identity format in token: {exc}") from exc

        kind = decoded.get("type")
        if kind not in TOKEN_KINDS:
            raise MalformedToken("invalid token type claim")

        exp = decoded.get("exp")
        if not isinstance(exp, (int, float)):
            raise MalformedToken("invalid exp claim")

        return TokenClaims(
            identity=identity,
            kind=kind,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            jti=decoded.get("jti"),
        )

    def _new_token(self, identity: uuid.UUID, kind: str, ttl: timedelta) -> str:
        # Claims carry whole seconds, so the issue instant is the second the
        # clock is in and exp is exactly iat + ttl.
        issued_at = int(self._clock().timestamp())
        payload = {
            "iss": self._issuer,
            "sub": str(identity),
            "type": kind,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self._private_key, algorithm=self._algorithm)

    def _decode(self, token: str) -> Dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise InvalidToken("Invalid token: empty")
        try:
            return jwt.decode(
                token,
                self._public_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["exp", "sub"],
                },
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc
