"""
Shared helpers and configuration for memory services.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

import core.config as config
from core.errors import AuthorizationDenied, NotFound, ServiceError, ValidationIssue
from core.models import Branch, BranchPreferences, Entry, MemoryBranchLink
from core.validators import (
    validate_required_text as _validate_required_text,
    validate_optional_text as _validate_optional_text,
    validate_id as _validate_id,
    validate_id_list as _validate_id_list,
    validate_bool_updates as _validate_bool_updates,
)

# =============================================================================
# Configuration
# =============================================================================

logger = config.logger

MAX_TEXT_LENGTH = config.MAX_TEXT_LENGTH
MAX_TITLE_LENGTH = config.MAX_TITLE_LENGTH
MAX_URL_LENGTH = config.MAX_URL_LENGTH
MAX_SHARE_TARGETS = config.MAX_SHARE_TARGETS
MAX_BATCH_LINKS = config.MAX_BATCH_LINKS

INTERNAL_ERROR_MESSAGE = "Internal server error"


# =============================================================================
# Error handling
# =============================================================================

def _tool_error_payload(
    tool_name: str,
    message: str,
    error_type: str,
    http_status: int,
    field: Optional[str] = None,
) -> dict:
    payload = {
        "status": "error",
        "error_type": error_type,
        "http_status": http_status,
        "tool": tool_name,
        "message": message,
    }
    if field is not None:
        payload["field"] = field
    return payload


def _log_validation_issue(tool_name: str, exc: ValidationIssue, warn: bool = False) -> None:
    payload = {
        "tool": tool_name,
        "field": exc.field,
        "error_type": exc.error_type,
        "detail": str(exc),
    }
    if warn:
        logger.warning("tool_validation_error", extra=payload)
    else:
        logger.info("tool_validation_error", extra=payload)


def _tool_error_handler(fn: Callable[..., dict]) -> Callable[..., dict]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationIssue as exc:
            _log_validation_issue(fn.__name__, exc, warn=False)
            return _tool_error_payload(
                fn.__name__, str(exc), "validation_error", exc.http_status, field=exc.field
            )
        except ServiceError as exc:
            logger.info(
                "tool_service_error",
                extra={"tool": fn.__name__, "error_type": exc.error_type, "detail": str(exc)},
            )
            return _tool_error_payload(fn.__name__, str(exc), exc.error_type, exc.http_status)
        except ValueError as exc:
            issue = ValidationIssue(str(exc), field="unknown", error_type="value_error")
            _log_validation_issue(fn.__name__, issue, warn=True)
            return _tool_error_payload(fn.__name__, str(issue), "validation_error", 400, field="unknown")
        except SQLAlchemyError:
            logger.exception("tool_store_error", extra={"tool": fn.__name__})
            return _tool_error_payload(fn.__name__, INTERNAL_ERROR_MESSAGE, "unexpected", 500)
    return wrapper


def service_tool(fn: Callable[..., dict]) -> Callable[..., dict]:
    return _tool_error_handler(fn)


# =============================================================================
# Lookups
# =============================================================================

def _require_branch(db, branch_id: str) -> Branch:
    branch = db.get(Branch, branch_id)
    if branch is None:
        raise NotFound("Branch not found")
    return branch


def _require_owned_branch(db, branch_id: str, user_id: str, message: str = "You do not manage this branch") -> Branch:
    branch = _require_branch(db, branch_id)
    if branch.owner_id != user_id:
        raise AuthorizationDenied(message)
    return branch


def _require_entry(db, memory_id: str) -> Entry:
    entry = db.get(Entry, memory_id)
    if entry is None:
        raise NotFound("Memory not found")
    return entry


# =============================================================================
# Serialization
# =============================================================================

def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _enum_value(value) -> Optional[str]:
    return getattr(value, "value", value)


def _serialize_branch(branch: Branch) -> dict:
    return {
        "id": branch.id,
        "title": branch.title,
        "owner_id": branch.owner_id,
        "grove_id": branch.grove_id,
        "person_id": branch.person_id,
        "is_legacy": bool(branch.is_legacy),
        "archived": bool(branch.archived),
    }


def _serialize_preferences(preferences: BranchPreferences) -> dict:
    return {
        "branch_id": preferences.branch_id,
        "can_be_tagged": preferences.can_be_tagged,
        "requires_tag_approval": preferences.requires_tag_approval,
        "visible_in_cross_shares": preferences.visible_in_cross_shares,
        "updated_at": _iso(preferences.updated_at),
    }


def _serialize_link(link: MemoryBranchLink) -> dict:
    return {
        "id": link.id,
        "memory_id": link.memory_id,
        "branch_id": link.branch_id,
        "role": _enum_value(link.role),
        "visibility_status": _enum_value(link.visibility_status),
        "created_at": _iso(link.created_at),
        "updated_at": _iso(link.updated_at),
    }


def _serialize_entry(entry: Entry) -> dict:
    return {
        "id": entry.id,
        "branch_id": entry.branch_id,
        "author_id": entry.author_id,
        "text": entry.text,
        "media_url": entry.media_url,
        "audio_url": entry.audio_url,
        "visibility": _enum_value(entry.visibility),
        "status": _enum_value(entry.status),
        "created_at": _iso(entry.created_at),
    }


__all__ = [
    "logger",
    "service_tool",
    "_validate_required_text",
    "_validate_optional_text",
    "_validate_id",
    "_validate_id_list",
    "_validate_bool_updates",
    "_require_branch",
    "_require_owned_branch",
    "_require_entry",
    "_serialize_branch",
    "_serialize_preferences",
    "_serialize_link",
    "_serialize_entry",
    "MAX_TEXT_LENGTH",
    "MAX_TITLE_LENGTH",
    "MAX_URL_LENGTH",
    "MAX_SHARE_TARGETS",
    "MAX_BATCH_LINKS",
]
