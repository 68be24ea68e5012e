from typing import Any, Iterable, Mapping

from fastapi import HTTPException
from sqlalchemy.orm import Session


def get_or_404(db: Session, model, id: int, message: str = "Запись не найдена"):
    """Return the object with ``id`` from ``model`` or raise a 404 error."""
    obj = db.get(model, id)
    if not obj:
        raise HTTPException(status_code=404, detail=message)
    return obj


def require_text(value: Any, field_label: str) -> str:
    """Return ``value`` stripped, raising 400 when it is blank."""
    text = str(value or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail=f"Поле «{field_label}» обязательно")
    return text


def apply_updates(obj: Any, payload: Mapping[str, Any], allowed: Iterable[str]) -> list[str]:
    """Copy whitelisted keys from ``payload`` onto ``obj``.

    Returns the names of the attributes whose value actually changed.
    """
    changed: list[str] = []
    for name in allowed:
        if name not in payload:
            continue
        value = payload[name]
        if isinstance(value, str):
            value = value.strip() or None
        if getattr(obj, name) != value:
            setattr(obj, name, value)
            changed.append(name)
    return changed
