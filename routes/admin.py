import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.security import hash_password
from auth import get_user_by_username
from database import get_db
from models import USER_ROLES, RoleChangeAudit, User
from security import SessionUser, current_user
from utils.invalidation import USERS, hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


class UserCreate(BaseModel):
    username: str
    password: str
    full_name: str = ""
    email: Optional[str] = None
    role: str = "user"


class RoleChange(BaseModel):
    role: str


def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "full_name": u.full_name,
        "email": u.email,
        "role": u.role,
        "created_at": u.created_at,
    }


def _check_role(role: str) -> str:
    role = (role or "").strip().lower()
    if role not in USER_ROLES:
        raise HTTPException(status_code=400, detail=f"Неизвестная роль: {role}")
    return role


def _admin_count(db: Session) -> int:
    return db.query(User).filter(User.role == "admin").count()


def _ensure_unique_user(
    db: Session, *, username: str, email: str | None, exclude_user_id: int | None = None
) -> None:
    existing = get_user_by_username(db, username)
    if existing and existing.id != exclude_user_id:
        raise HTTPException(status_code=400, detail="Это имя пользователя уже занято")
    if email:
        email_query = db.query(User).filter(User.email == email)
        if exclude_user_id is not None:
            email_query = email_query.filter(User.id != exclude_user_id)
        if email_query.first():
            raise HTTPException(status_code=400, detail="Этот e-mail уже зарегистрирован")


@router.get("/users")
def users_list(q: Optional[str] = None, db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.username.asc()).all()
    if q:
        needle = q.strip().casefold()
        users = [
            u
            for u in users
            if needle in (u.username or "").casefold()
            or needle in (u.full_name or "").casefold()
            or needle in (u.email or "").casefold()
        ]
    return [_user_dict(u) for u in users]


@router.post("/users")
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    username = payload.username.strip()
    if not username:
        raise HTTPException(status_code=400, detail="Имя пользователя обязательно")
    if len(payload.password) < 6:
        raise HTTPException(status_code=400, detail="Пароль должен быть не короче 6 символов")
    email = (payload.email or "").strip() or None
    _ensure_unique_user(db, username=username, email=email)

    u = User(
        username=username,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name.strip() or username,
        email=email,
        role=_check_role(payload.role),
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    logger.info("User %s created with role %s", u.username, u.role)
    hub.publish(USERS)
    return _user_dict(u)


def change_role(
    uid: int,
    payload: RoleChange,
    user: SessionUser = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Change a user's role and record the change in the audit table."""

    new_role = _check_role(payload.role)
    target = db.get(User, uid)
    if not target:
        raise HTTPException(status_code=404, detail="Пользователь не найден")
    old_role = target.role
    if old_role == new_role:
        return _user_dict(target)
    if old_role == "admin":
        if target.id == user.id:
            raise HTTPException(
                status_code=400, detail="Нельзя снять права администратора с самого себя"
            )
        if _admin_count(db) <= 1:
            raise HTTPException(
                status_code=400, detail="Нельзя снять права у последнего администратора"
            )

    target.role = new_role
    db.add(
        RoleChangeAudit(
            changed_by=user.id, target_user=target.id, old_role=old_role, new_role=new_role
        )
    )
    db.commit()
    db.refresh(target)
    logger.info("%s changed role of %s: %s -> %s", user.username, target.username, old_role, new_role)
    hub.publish(USERS)
    return _user_dict(target)


@router.post("/users/{uid}/role")
def change_role_endpoint(
    uid: int,
    payload: RoleChange,
    user: SessionUser = Depends(current_user),
    db: Session = Depends(get_db),
):
    return change_role(uid, payload, user=user, db=db)


def _user_delete(
    uid: int,
    user: SessionUser = Depends(current_user),
    db: Session = Depends(get_db),
):
    target = db.get(User, uid)
    if not target:
        raise HTTPException(status_code=404, detail="Пользователь не найден")
    if target.id == user.id:
        raise HTTPException(status_code=403, detail="Нельзя удалить собственную учётную запись")
    if target.role == "admin" and _admin_count(db) <= 1:
        raise HTTPException(status_code=403, detail="Нельзя удалить последнего администратора")
    username = target.username
    db.delete(target)
    db.commit()
    logger.info("%s deleted user %s", user.username, username)
    hub.publish(USERS)
    return {"ok": True}


@router.delete("/users/{uid}")
def user_delete_endpoint(
    uid: int,
    user: SessionUser = Depends(current_user),
    db: Session = Depends(get_db),
):
    return _user_delete(uid, user=user, db=db)


@router.get("/audit")
def role_audit(limit: int = 200, db: Session = Depends(get_db)) -> List[dict]:
    rows = (
        db.query(RoleChangeAudit)
        .order_by(RoleChangeAudit.changed_at.desc(), RoleChangeAudit.id.desc())
        .limit(limit)
        .all()
    )
    names = {u.id: u.username for u in db.query(User).all()}
    return [
        {
            "id": r.id,
            "changed_by": names.get(r.changed_by),
            "target_user": names.get(r.target_user),
            "old_role": r.old_role,
            "new_role": r.new_role,
            "changed_at": r.changed_at,
        }
        for r in rows
    ]


# Module-level aliases for compatibility with tests/importers
user_delete = _user_delete
