"""
Dependency helpers for the standalone FastAPI app.
"""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, Request

import core.config as config
from core.context import AuthContext, RequestContext
from core.db import DB
from core.models import User


def get_db_session() -> Generator:
    if DB.SessionLocal is None:
        raise RuntimeError("Database not initialized - SessionLocal is None")
    db = DB.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db=Depends(get_db_session)) -> Optional[User]:
    """Resolve the user id forwarded by the upstream auth layer."""
    user_id = (request.headers.get(config.AUTH_USER_HEADER) or "").strip()
    if not user_id or len(user_id) > config.MAX_ID_LENGTH:
        return None
    return db.get(User, user_id)


async def get_auth_context(
    user=Depends(get_current_user),
) -> AuthContext:
    if user:
        actor = getattr(user, "email", None) or getattr(user, "name", None) or "user"
        return AuthContext(user_id=user.id, actor=actor)
    return AuthContext(actor="anonymous")


async def get_request_context(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
) -> RequestContext:
    return RequestContext(
        auth=auth,
        request_id=request.headers.get("X-Request-Id"),
        source="http",
    )
