"""
Password helpers:
- strength policy checked before any credential is created
- Argon2 password hashing via argon2-cffi
"""
from __future__ import annotations

import string
from typing import Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 30
PASSWORD_SYMBOLS = "!@#$%^&*()-_=+[]{}<>?/|~.,;:"

PASSWORD_POLICY_ERROR = (
    "password must be 8-30 characters long and contain an uppercase letter, "
    "a lowercase letter, a digit and one of " + PASSWORD_SYMBOLS
)

ph = PasswordHasher()


def check_password_policy(password: str) -> Tuple[bool, Optional[str]]:
    """Return (True, None) for an acceptable password, else (False, reason).

    The reason is the same fixed message whichever rule failed first.
    """
    if not isinstance(password, str):
        return False, PASSWORD_POLICY_ERROR
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        return False, PASSWORD_POLICY_ERROR

    rules = (
        string.ascii_uppercase,
        string.ascii_lowercase,
        string.digits,
        PASSWORD_SYMBOLS,
    )
    for allowed in rules:
        if not any(ch in allowed for ch in password):
            return False, PASSWORD_POLICY_ERROR
    return True, None


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against an Argon2 digest.

    A mismatch and an unparseable digest both give False.
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError, TypeError, ValueError):
        return False
