from __future__ import annotations

from fastapi import APIRouter, Depends, FastAPI, Form, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import authenticate
from database import get_db
from routers import (
    connections,
    equipment,
    events,
    export,
    functions,
    imports,
    mappings,
    rooms,
)
from routes.admin import router as admin_router
from security import SessionUser, current_user, require_roles

router = APIRouter()


@router.post("/login")
def login_submit(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    user = authenticate(db, username.strip(), password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Неверное имя пользователя или пароль",
        )

    request.session["user_id"] = user.id
    request.session["user_name"] = user.full_name or user.username
    request.session["user_role"] = user.role or "none"
    session_user = SessionUser(user.id, user.username, user.role or "none", user.full_name, user.email)
    return {"ok": True, "user": me_payload(session_user)}


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"ok": True}


def me_payload(user: SessionUser) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "role": user.role,
        **user.capabilities(),
    }


@router.get("/api/me")
def me(user: SessionUser = Depends(current_user)):
    return me_payload(user)


for module in (rooms, connections, mappings, equipment, imports, export):
    router.include_router(module.router, dependencies=[Depends(current_user)])
# each action checks its own role
router.include_router(functions.router)
router.include_router(events.router)
router.include_router(admin_router, dependencies=[Depends(require_roles("admin"))])


def register_web_routes(app: FastAPI) -> None:
    """Attach every API router to the FastAPI application."""

    app.include_router(router)
