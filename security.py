# security.py
from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import get_user_by_id
from database import get_db

EDITOR_ROLES = ("admin", "staff")


@dataclass
class SessionUser:
    id: int
    username: str
    role: str
    full_name: str | None = field(default=None)
    email: str | None = field(default=None)

    def __post_init__(self) -> None:
        if not self.full_name:
            self.full_name = self.username

    @property
    def can_edit(self) -> bool:
        return self.role in EDITOR_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def capabilities(self) -> dict[str, bool]:
        return {
            "can_edit": self.can_edit,
            "can_view_admin_panel": self.is_admin,
            "can_view_users": self.is_admin,
        }


def current_user(request: Request, db: Session = Depends(get_db)) -> SessionUser:
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Требуется вход в систему"
        )
    u = get_user_by_id(db, int(user_id))
    if not u:
        request.session.clear()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Требуется вход в систему"
        )
    return SessionUser(u.id, u.username, u.role or "none", u.full_name, u.email)


def require_roles(*roles: str):
    def dep(user: SessionUser = Depends(current_user)) -> SessionUser:
        if roles and user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Недостаточно прав"
            )
        return user

    return dep


require_editor = require_roles(*EDITOR_ROLES)
require_admin = require_roles("admin")
