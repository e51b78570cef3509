"""
Branch preference helpers (memory association controls).

Preferences are created lazily with defaults the first time a branch is
queried, so every branch that has been looked at owns exactly one row.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.errors import NotFound
from core.models import Branch, BranchPreferences
from core.services.memory_shared import _validate_bool_updates, logger

PREFERENCE_FIELDS = ("can_be_tagged", "requires_tag_approval", "visible_in_cross_shares")

DEFAULT_PREFERENCES = {
    "can_be_tagged": True,
    "requires_tag_approval": False,
    "visible_in_cross_shares": True,
}


def _find_preferences(db, branch_id: str) -> Optional[BranchPreferences]:
    return (
        db.query(BranchPreferences)
        .filter(BranchPreferences.branch_id == branch_id)
        .first()
    )


def get_branch_preferences(db, branch_id: str) -> BranchPreferences:
    """
    Return the branch's preferences, creating the default row if missing.

    Creating the row commits the session.
    """
    preferences = _find_preferences(db, branch_id)
    if preferences:
        return preferences

    if db.get(Branch, branch_id) is None:
        raise NotFound("Branch not found")

    preferences = BranchPreferences(branch_id=branch_id, **DEFAULT_PREFERENCES)
    db.add(preferences)
    try:
        db.commit()
    except IntegrityError:
        # Another request created the row first.
        db.rollback()
        preferences = _find_preferences(db, branch_id)
        if preferences is None:
            raise
        return preferences
    logger.info("Created default branch preferences", extra={"branch_id": branch_id})
    return preferences


def update_branch_preferences(db, branch_id: str, updates: dict, commit: bool = True) -> BranchPreferences:
    """
    Apply a partial update of the boolean preference flags.

    With ``commit=False`` the change is only flushed, for callers that stage
    more work in the same transaction.
    """
    _validate_bool_updates(updates, PREFERENCE_FIELDS, "preferences")
    preferences = get_branch_preferences(db, branch_id)
    for key, value in updates.items():
        setattr(preferences, key, value)
    if commit:
        db.commit()
    else:
        db.flush()
    return preferences


def can_tag_branch(db, branch_id: str) -> bool:
    return get_branch_preferences(db, branch_id).can_be_tagged


def requires_approval(db, branch_id: str) -> bool:
    return get_branch_preferences(db, branch_id).requires_tag_approval


def can_manage_branch_preferences(db, user_id: Optional[str], branch_id: str) -> bool:
    if not user_id:
        return False
    branch = db.get(Branch, branch_id)
    return branch is not None and branch.owner_id == user_id


__all__ = [
    "PREFERENCE_FIELDS",
    "DEFAULT_PREFERENCES",
    "get_branch_preferences",
    "update_branch_preferences",
    "can_tag_branch",
    "requires_approval",
    "can_manage_branch_preferences",
]
