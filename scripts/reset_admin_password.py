"""Reset a user's password from the command line."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from app.core.log import setup_logging
from app.core.security import hash_password
from auth import get_user_by_username
from models import SessionLocal

logger = logging.getLogger(__name__)


def reset_password(
    username: str,
    password: str,
    *,
    db: Session | None = None,
) -> bool:
    """Store a freshly hashed ``password`` for ``username``.

    The username lookup ignores case and surrounding whitespace. Returns
    ``False`` when no such user exists; blank arguments raise
    :class:`ValueError`.
    """

    normalized = (username or "").strip()
    if not normalized:
        raise ValueError("username cannot be blank")
    if not password:
        raise ValueError("password cannot be empty")

    own_session = db is None
    session = db or SessionLocal()
    try:
        user = get_user_by_username(session, normalized)
        if not user:
            return False
        user.password_hash = hash_password(password)
        session.add(user)
        session.commit()
        logger.info("Password reset for %s", user.username)
        return True
    finally:
        if own_session:
            session.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Сброс пароля пользователя.")
    parser.add_argument(
        "-u",
        "--username",
        default=os.getenv("DEFAULT_ADMIN_USERNAME", "admin"),
        help="Имя пользователя (по умолчанию: %(default)s)",
    )
    parser.add_argument(
        "-p",
        "--password",
        help="Новый пароль. Если не указан, берётся DEFAULT_ADMIN_PASSWORD.",
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    load_dotenv()
    setup_logging()
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    password = args.password or os.getenv("DEFAULT_ADMIN_PASSWORD", "")
    if not password:
        parser.error("Пароль не указан: используйте --password или DEFAULT_ADMIN_PASSWORD.")

    try:
        updated = reset_password(args.username, password)
    except ValueError as exc:
        parser.error(str(exc))
        return 1

    if not updated:
        print(f"Ошибка: пользователь '{args.username}' не найден.", file=sys.stderr)
        return 1
    print(f"Пароль обновлён: {args.username}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
