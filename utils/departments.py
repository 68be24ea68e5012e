"""Department name normalisation and alias resolution.

Department names come from two independently maintained spreadsheets and
differ in spacing and, occasionally, in wording. Matching is exact after the
whitespace is collapsed; legitimate wording variants are declared in the
``department_aliases`` table instead of being guessed by substring search.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from models import Department, DepartmentAlias


def normalize_name(value: object) -> str:
    """Collapse runs of whitespace (including line breaks) and trim."""

    if value is None:
        return ""
    return " ".join(str(value).split())


def _fold(value: str) -> str:
    return normalize_name(value).casefold()


def load_aliases(db: Session) -> dict[str, str]:
    """Return ``{folded alias: canonical name}`` for all declared aliases."""

    return {
        _fold(row.alias): normalize_name(row.canonical)
        for row in db.query(DepartmentAlias).all()
    }


def resolve_department(name: object, aliases: dict[str, str] | None = None) -> str:
    normalized = normalize_name(name)
    if aliases:
        return aliases.get(normalized.casefold(), normalized)
    return normalized


def same_department(a: object, b: object, aliases: dict[str, str] | None = None) -> bool:
    left = resolve_department(a, aliases)
    right = resolve_department(b, aliases)
    return bool(left) and left.casefold() == right.casefold()


def department_id_for(db: Session, name: object) -> int | None:
    normalized = normalize_name(name)
    if not normalized:
        return None
    row = db.query(Department.id).filter(Department.name == normalized).first()
    return row[0] if row else None


def ensure_department(db: Session, name: object) -> Department:
    """Return the department called ``name``, creating it when missing."""

    normalized = normalize_name(name)
    dept = db.query(Department).filter(Department.name == normalized).first()
    if dept is None:
        dept = Department(name=normalized)
        db.add(dept)
        db.flush()
    return dept


def stored_spellings(db: Session, column, name: object) -> list[str]:
    """Values of ``column`` that equal ``name`` once whitespace is collapsed.

    Rows written before names were normalised on import may still carry
    doubled or trailing spaces.
    """

    target = normalize_name(name)
    if not target:
        return []
    return [
        row[0] for row in db.query(column).distinct().all() if normalize_name(row[0]) == target
    ]
