from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.security import hash_password, needs_password_rehash, verify_password
from models import User

# "ё" and "е" are used interchangeably in Russian logins
_LOGIN_REPLACEMENTS = {"ё": "е"}


def _normalize_username(value: str | None) -> str:
    """Return a case-insensitive representation of *value*."""

    if not value:
        return ""

    normalized = value.strip().casefold()
    for search, replacement in _LOGIN_REPLACEMENTS.items():
        normalized = normalized.replace(search, replacement)
    return normalized


def _normalized_username_column():
    """SQL expression mirroring :func:`_normalize_username`."""

    column = func.lower(func.trim(User.username))
    for search, replacement in _LOGIN_REPLACEMENTS.items():
        column = func.replace(column, search, replacement)
        column = func.replace(column, search.upper(), replacement)
    return column


def get_user_by_username(db: Session, username: str) -> User | None:
    normalized = _normalize_username(username)
    if not normalized:
        return None

    # SQLite's lower() only folds ASCII, so fall back to a Python-side scan
    user = db.query(User).filter(_normalized_username_column() == normalized).first()
    if user is not None:
        return user
    for candidate in db.query(User).all():
        if _normalize_username(candidate.username) == normalized:
            return candidate
    return None


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def authenticate(db: Session, username: str, password: str) -> User | None:
    """Return the user when the credentials match, upgrading stale hashes."""

    user = get_user_by_username(db, username)
    if user is None or not verify_password(password, user.password_hash):
        return None

    if needs_password_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.add(user)
        db.commit()
    return user
