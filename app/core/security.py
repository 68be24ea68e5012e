"""Password hashing built on passlib."""

from __future__ import annotations

from passlib import exc as passlib_exc
from passlib.context import CryptContext

# pbkdf2 stays in the list so hashes created by older deployments still verify
pwd_context = CryptContext(schemes=["bcrypt", "pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (passlib_exc.UnknownHashError, ValueError):
        return False


def needs_password_rehash(password_hash: str) -> bool:
    """Return ``True`` when *password_hash* uses a deprecated scheme."""

    try:
        return pwd_context.needs_update(password_hash)
    except (passlib_exc.UnknownHashError, ValueError):
        return True


__all__ = ["hash_password", "verify_password", "needs_password_rehash", "pwd_context"]
