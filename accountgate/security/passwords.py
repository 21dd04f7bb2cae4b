"""Password hashing helpers backed by passlib."""

from __future__ import annotations

from passlib.context import CryptContext

_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Compare a plaintext password with a stored hash in constant time."""
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # malformed or unrecognised hash
        return False


def dummy_verify() -> None:
    """Spend the same work as a real verification when no principal matched."""
    _pwd.dummy_verify()
