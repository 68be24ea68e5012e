from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette import status as st_status
from starlette.middleware.sessions import SessionMiddleware

from app.core import config
from app.core.log import setup_logging
from app.core.security import hash_password
from app.db.init import init_db
from app.web import register_web_routes

load_dotenv()
setup_logging()

logger = logging.getLogger(__name__)


# --- Secrets & Config ---------------------------------------------------------
SESSION_SECRET_FILE = Path(__file__).resolve().parent.parent / ".session_secret"


def _read_persisted_secret() -> str | None:
    """Return a previously generated session secret if available."""

    try:
        data = SESSION_SECRET_FILE.read_text(encoding="utf-8").strip()
    except OSError:
        return None

    if len(data) >= 32:
        return data
    return None


def _persist_secret(value: str) -> None:
    """Persist the generated secret to disk for multi-worker reuse."""

    try:
        SESSION_SECRET_FILE.write_text(value, encoding="utf-8")
        SESSION_SECRET_FILE.chmod(0o600)
    except OSError as exc:
        logger.warning("Could not persist session secret: %s", exc)


def _load_session_secret() -> str:
    """Return a session secret, generating a persisted one if necessary."""

    secret = os.getenv("SESSION_SECRET")
    if secret and len(secret) >= 32:
        return secret

    persisted = _read_persisted_secret()
    if persisted:
        if secret:
            logger.warning(
                "SESSION_SECRET is shorter than 32 characters; using .session_secret"
            )
        else:
            logger.warning("SESSION_SECRET is not set; using .session_secret")
        os.environ.setdefault("SESSION_SECRET", persisted)
        return persisted

    logger.warning(
        "SESSION_SECRET is missing or too short; generating a value for development runs"
    )
    generated = secrets.token_urlsafe(32)
    _persist_secret(generated)
    os.environ.setdefault("SESSION_SECRET", generated)
    return generated


SESSION_SECRET = _load_session_secret()

DEFAULT_ADMIN_PASSWORD = config.DEFAULT_ADMIN_PASSWORD
if not DEFAULT_ADMIN_PASSWORD:
    DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_DEV_PASSWORD", "admin123")
    logger.warning(
        "DEFAULT_ADMIN_PASSWORD is not set; using the development default. "
        "Set DEFAULT_ADMIN_PASSWORD in production environments."
    )
if not config.SESSION_HTTPS_ONLY:
    logger.warning(
        "Session cookies are not marked secure; set SESSION_HTTPS_ONLY=true in production."
    )

# --- App & Middleware ---------------------------------------------------------
app = FastAPI(title="Сопоставление помещений")

DEFAULT_ERROR_MESSAGE = "Произошла непредвиденная ошибка."


def _extract_error_message(detail: object) -> str:
    """Create a human readable message from various HTTPException.detail shapes."""

    if detail is None:
        return DEFAULT_ERROR_MESSAGE

    if isinstance(detail, str):
        return detail.strip() or DEFAULT_ERROR_MESSAGE

    if isinstance(detail, dict):
        for key in ("message", "detail", "error", "msg"):
            value = detail.get(key)
            if value:
                return _extract_error_message(value)
        return DEFAULT_ERROR_MESSAGE

    if isinstance(detail, (list, tuple)):
        rendered = [_extract_error_message(item) for item in detail if item is not None]
        return ", ".join(filter(None, rendered)) or DEFAULT_ERROR_MESSAGE

    return str(detail)


def _resolve_error_title(status_code: int | None) -> str:
    """Return a friendly title based on HTTP status code."""

    mapping = {
        st_status.HTTP_400_BAD_REQUEST: "Недопустимая операция",
        st_status.HTTP_401_UNAUTHORIZED: "Требуется вход",
        st_status.HTTP_403_FORBIDDEN: "Доступ запрещён",
        st_status.HTTP_404_NOT_FOUND: "Не найдено",
        st_status.HTTP_500_INTERNAL_SERVER_ERROR: "Ошибка сервера",
    }
    return mapping.get(status_code, "Что-то пошло не так")


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    """Handle redirects and return ``{detail, title}`` for everything else."""

    if isinstance(exc.detail, str) and exc.detail.startswith("redirect:/"):
        url = exc.detail.split(":", 1)[1]
        return RedirectResponse(url=url, status_code=st_status.HTTP_303_SEE_OTHER)

    status_code = exc.status_code or st_status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(
        {
            "detail": _extract_error_message(exc.detail),
            "title": _resolve_error_title(status_code),
        },
        status_code=status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {
            "detail": "Ошибка базы данных. Изменения не сохранены.",
            "title": _resolve_error_title(st_status.HTTP_500_INTERNAL_SERVER_ERROR),
        },
        status_code=st_status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    max_age=60 * 60 * 8,
    same_site="lax",
    https_only=config.SESSION_HTTPS_ONLY,
)
app.state.session_https_only = config.SESSION_HTTPS_ONLY

register_web_routes(app)


# --- Startup: DB init & default admin ----------------------------------------
def ensure_default_admin(db) -> bool:
    """Create the bootstrap admin account when it does not exist yet."""

    from models import User

    existing = (
        db.query(User).filter(User.username == config.DEFAULT_ADMIN_USERNAME).first()
    )
    if existing:
        return False
    db.add(
        User(
            username=config.DEFAULT_ADMIN_USERNAME,
            password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
            full_name=config.DEFAULT_ADMIN_FULLNAME,
            role="admin",
        )
    )
    db.commit()
    logger.info("Default admin created: %s", config.DEFAULT_ADMIN_USERNAME)
    return True


@app.on_event("startup")
def on_startup():
    from models import SessionLocal

    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()
