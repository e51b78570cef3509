"""
Request-scoped context objects for core services.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.errors import AuthenticationRequired


@dataclass(frozen=True)
class AuthContext:
    user_id: Optional[str] = None
    actor: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


@dataclass(frozen=True)
class RequestContext:
    auth: AuthContext
    request_id: Optional[str] = None
    source: Optional[str] = None


def require_user_id(context: Optional[RequestContext]) -> str:
    """Return the calling user's id or raise AuthenticationRequired."""
    if context is None or context.auth is None or not context.auth.is_authenticated:
        raise AuthenticationRequired()
    return context.auth.user_id


def context_for_user(user_id: Optional[str], actor: Optional[str] = None) -> RequestContext:
    return RequestContext(auth=AuthContext(user_id=user_id, actor=actor or ("user" if user_id else "anonymous")))


__all__ = [
    "AuthContext",
    "RequestContext",
    "require_user_id",
    "context_for_user",
]
