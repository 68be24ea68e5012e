"""Session helpers shared by routers and scripts."""

from __future__ import annotations

from typing import Iterator

from sqlalchemy.orm import Session

from models import SessionLocal, engine

__all__ = ["SessionLocal", "engine", "get_db"]


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
