"""Room linking service: ``uvicorn app:app`` serves :mod:`app.main`."""

from __future__ import annotations

from typing import Any

__all__ = ["app"]


def __getattr__(name: str) -> Any:
    # deferred so scripts importing app.core do not build the web app
    if name == "app":
        from app.main import app

        return app
    raise AttributeError(name)
