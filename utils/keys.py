"""
Key material for token signing.

The private key signs, the public key verifies. Both are read once at startup
from PEM files; PKCS#1 and PKCS#8 private keys are accepted.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


class KeyMaterialError(RuntimeError):
    pass


def _read_pem(path: Union[str, Path]) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise KeyMaterialError(f"failed to read key file {path}: {exc}") from exc


def load_private_key(path: Union[str, Path]) -> rsa.RSAPrivateKey:
    data = _read_pem(path)
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as exc:
        raise KeyMaterialError(f"failed to parse private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyMaterialError("private key is not an RSA key")
    return key


def load_public_key(path: Union[str, Path]) -> rsa.RSAPublicKey:
    data = _read_pem(path)
    try:
        key = serialization.load_pem_public_key(data)
    except (ValueError, TypeError) as exc:
        raise KeyMaterialError(f"failed to parse public key: {exc}") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyMaterialError("public key is not an RSA key")
    return key


def generate_key_pair(key_size: int = 2048):
    """Generate a fresh RSA pair; returns (private_key, public_key)."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return private_key, private_key.public_key()


def write_key_pair(private_path: Union[str, Path], public_path: Union[str, Path], key_size: int = 2048) -> None:
    """Write a new PEM key pair to disk (PKCS#8 private, SubjectPublicKeyInfo public)."""
    private_key, public_key = generate_key_pair(key_size)
    Path(private_path).write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    Path(public_path).write_bytes(
        public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
