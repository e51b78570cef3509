"""
Branch services: creation, association preferences and share targets.
"""

from __future__ import annotations

from typing import Optional

from core.audit import record_user_event
from core.audit_constants import EVENT_BRANCH_PREFERENCES_UPDATED
from core.context import RequestContext, require_user_id
from core.db import DB
from core.errors import NotFound, ValidationIssue
from core.models import Branch, Grove, Person
from core.services.branch_preferences import (
    get_branch_preferences,
    update_branch_preferences,
)
from core.services.memory_shared import (
    _require_branch,
    _require_owned_branch,
    _serialize_branch,
    _serialize_preferences,
    _validate_id,
    _validate_required_text,
    MAX_TITLE_LENGTH,
    service_tool,
    logger,
)

OWNER_ONLY_MESSAGE = "You do not own this branch"


@service_tool
def create_branch(
    title: str,
    grove_id: Optional[str] = None,
    person_id: Optional[str] = None,
    is_legacy: bool = False,
    context: Optional[RequestContext] = None,
) -> dict:
    """Create a branch owned by the caller, with default preferences."""
    user_id = require_user_id(context)
    _validate_required_text(title, "title", MAX_TITLE_LENGTH)
    if grove_id is not None:
        _validate_id(grove_id, "grove_id")
    if person_id is not None:
        _validate_id(person_id, "person_id")

    db = DB.SessionLocal()
    try:
        if grove_id is not None and db.get(Grove, grove_id) is None:
            raise NotFound("Grove not found")
        if person_id is not None and db.get(Person, person_id) is None:
            raise NotFound("Person not found")
        branch = Branch(
            title=title.strip(),
            owner_id=user_id,
            grove_id=grove_id,
            person_id=person_id,
            is_legacy=bool(is_legacy),
        )
        db.add(branch)
        db.commit()
        preferences = get_branch_preferences(db, branch.id)
        logger.info("Branch created", extra={"branch_id": branch.id})
        return {
            "status": "created",
            "branch": _serialize_branch(branch),
            "preferences": _serialize_preferences(preferences),
        }
    finally:
        db.close()


@service_tool
def get_preferences(
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    user_id = require_user_id(context)
    _validate_id(branch_id, "branch_id")

    db = DB.SessionLocal()
    try:
        _require_owned_branch(db, branch_id, user_id, OWNER_ONLY_MESSAGE)
        preferences = get_branch_preferences(db, branch_id)
        return {"status": "ok", "preferences": _serialize_preferences(preferences)}
    finally:
        db.close()


@service_tool
def set_preferences(
    branch_id: str,
    updates: dict,
    context: Optional[RequestContext] = None,
) -> dict:
    """Owner-only partial update of the branch's tagging preferences."""
    user_id = require_user_id(context)
    _validate_id(branch_id, "branch_id")
    if isinstance(updates, dict) and not updates:
        raise ValidationIssue("preferences must set at least one flag", field="preferences", error_type="required")

    db = DB.SessionLocal()
    try:
        _require_owned_branch(db, branch_id, user_id, OWNER_ONLY_MESSAGE)
        preferences = update_branch_preferences(db, branch_id, updates, commit=False)
        record_user_event(
            db,
            context,
            EVENT_BRANCH_PREFERENCES_UPDATED,
            [branch_id],
            target_type="branch",
            can_be_tagged=preferences.can_be_tagged,
            requires_tag_approval=preferences.requires_tag_approval,
            visible_in_cross_shares=preferences.visible_in_cross_shares,
        )
        db.commit()
        return {
            "status": "ok",
            "success": True,
            "preferences": _serialize_preferences(preferences),
        }
    finally:
        db.close()


@service_tool
def list_shareable_branches(
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Other live branches of the same grove, with their tagging preferences."""
    require_user_id(context)
    _validate_id(branch_id, "branch_id")

    db = DB.SessionLocal()
    try:
        branch = _require_branch(db, branch_id)
        if not branch.grove_id:
            return {"status": "ok", "count": 0, "branches": []}

        candidates = (
            db.query(Branch)
            .filter(Branch.grove_id == branch.grove_id)
            .filter(Branch.id != branch_id)
            .filter(Branch.archived.is_(False))
            .order_by(Branch.title.asc())
            .all()
        )
        branches = []
        for candidate in candidates:
            preferences = get_branch_preferences(db, candidate.id)
            branches.append(
                {
                    "id": candidate.id,
                    "title": candidate.title,
                    "requires_approval": preferences.requires_tag_approval,
                    "can_be_tagged": preferences.can_be_tagged,
                }
            )
        return {"status": "ok", "count": len(branches), "branches": branches}
    finally:
        db.close()


__all__ = [
    "create_branch",
    "get_preferences",
    "set_preferences",
    "list_shareable_branches",
]
