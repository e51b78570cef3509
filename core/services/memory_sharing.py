"""
Memory sharing services.

Provides the caller-facing operations around cross-branch links:
- Create a memory in a branch (with its origin link)
- Share a memory into additional branches
- Remove a shared memory from one's own branch
- Inspect the links of a memory
"""

from __future__ import annotations

from typing import Optional, Sequence

from core.audit import record_user_event
from core.audit_constants import EVENT_MEMORY_REMOVED_BY_USER, EVENT_MEMORY_SHARED
from core.context import RequestContext, require_user_id
from core.db import DB
from core.errors import AuthorizationDenied, InvalidState, NotFound, ValidationIssue
from core.models import Entry, EntryVisibility, LinkRole, LinkStatus, LIVE_LINK_STATUSES, MemoryBranchLink
from core.services.memory_links import (
    ShareOutcome,
    create_memory_links,
    find_link,
    get_memory_links,
    get_most_restrictive_visibility,
    get_shared_branches,
    is_shared_memory,
    propagate_memory_update,
    transition_link,
)
from core.services.memory_shared import (
    _require_entry,
    _require_owned_branch,
    _serialize_branch,
    _serialize_entry,
    _serialize_link,
    _validate_id,
    _validate_id_list,
    _validate_optional_text,
    _validate_required_text,
    MAX_SHARE_TARGETS,
    MAX_TEXT_LENGTH,
    MAX_URL_LENGTH,
    service_tool,
    logger,
)


def _parse_visibility(value) -> EntryVisibility:
    try:
        return EntryVisibility(value)
    except ValueError as exc:
        raise ValidationIssue(
            "visibility must be PRIVATE, SHARED or LEGACY",
            field="visibility",
            error_type="invalid_value",
        ) from exc


def _share_auditor(db, context, memory_id: str):
    """Stage a memory.shared event alongside each new link."""
    def _stage(branch_id: str, status: str) -> None:
        record_user_event(
            db,
            context,
            EVENT_MEMORY_SHARED,
            [memory_id],
            target_branch_id=branch_id,
            visibility_status=status,
        )
    return _stage


def _share_summary(outcomes: Sequence[ShareOutcome]) -> str:
    shared = len([outcome for outcome in outcomes if outcome.success])
    return f"Memory shared to {shared} branches"


@service_tool
def create_memory(
    branch_id: str,
    text: str,
    visibility: str = EntryVisibility.PRIVATE.value,
    media_url: Optional[str] = None,
    audio_url: Optional[str] = None,
    share_to: Optional[Sequence[str]] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    """Create a memory in a branch the caller owns, optionally sharing it."""
    user_id = require_user_id(context)
    _validate_id(branch_id, "branch_id")
    _validate_required_text(text, "text", MAX_TEXT_LENGTH)
    _validate_optional_text(media_url, "media_url", MAX_URL_LENGTH)
    _validate_optional_text(audio_url, "audio_url", MAX_URL_LENGTH)
    if share_to:
        _validate_id_list(share_to, "share_to", MAX_SHARE_TARGETS)
    entry_visibility = _parse_visibility(visibility)

    db = DB.SessionLocal()
    try:
        branch = _require_owned_branch(db, branch_id, user_id)
        if branch.archived:
            raise InvalidState("Branch is archived")
        entry = Entry(
            branch_id=branch.id,
            author_id=user_id,
            text=text,
            media_url=media_url,
            audio_url=audio_url,
            visibility=entry_visibility,
        )
        db.add(entry)
        db.flush()
        # The entry never exists without its origin link.
        db.add(
            MemoryBranchLink(
                memory_id=entry.id,
                branch_id=branch.id,
                role=LinkRole.origin,
                visibility_status=LinkStatus.active,
            )
        )
        db.commit()

        outcomes = create_memory_links(
            db, entry.id, branch.id, share_to or [], on_created=_share_auditor(db, context, entry.id)
        )

        return {
            "status": "created",
            "memory": _serialize_entry(entry),
            "results": [outcome.to_dict() for outcome in outcomes],
        }
    finally:
        db.close()


@service_tool
def update_memory(
    memory_id: str,
    updates: dict,
    context: Optional[RequestContext] = None,
) -> dict:
    """Author-only update; every branch linked to the memory sees the change."""
    user_id = require_user_id(context)
    _validate_id(memory_id, "memory_id")
    if not isinstance(updates, dict) or not updates:
        raise ValidationIssue("updates must be a non-empty object", field="updates", error_type="required")
    if "text" in updates:
        _validate_required_text(updates["text"], "text", MAX_TEXT_LENGTH)
    for field in ("media_url", "audio_url"):
        if field in updates:
            _validate_optional_text(updates[field], field, MAX_URL_LENGTH)

    db = DB.SessionLocal()
    try:
        entry = _require_entry(db, memory_id)
        if entry.author_id != user_id:
            raise AuthorizationDenied("Only the memory creator can edit it")
        entry = propagate_memory_update(db, memory_id, updates)
        return {"status": "ok", "memory": _serialize_entry(entry)}
    finally:
        db.close()


@service_tool
def share_memory(
    memory_id: str,
    branch_ids: Sequence[str],
    context: Optional[RequestContext] = None,
) -> dict:
    """
    Share a memory to additional branches.

    Only the memory's author may share it.  Each target gets its own
    outcome; one rejected target does not stop the others.
    """
    user_id = require_user_id(context)
    _validate_id(memory_id, "memory_id")
    _validate_id_list(branch_ids, "branch_ids", MAX_SHARE_TARGETS)

    db = DB.SessionLocal()
    try:
        entry = _require_entry(db, memory_id)
        if entry.author_id != user_id:
            raise AuthorizationDenied("Only the memory creator can share it")

        outcomes = create_memory_links(
            db, entry.id, entry.branch_id, branch_ids, on_created=_share_auditor(db, context, entry.id)
        )

        return {
            "status": "ok",
            "success": True,
            "results": [outcome.to_dict() for outcome in outcomes],
            "message": _share_summary(outcomes),
        }
    finally:
        db.close()


@service_tool
def remove_memory_from_my_branch(
    memory_id: str,
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Branch owner hides a shared memory from their branch (removed_by_user)."""
    user_id = require_user_id(context)
    _validate_id(memory_id, "memory_id")
    _validate_id(branch_id, "branch_id")

    db = DB.SessionLocal()
    try:
        _require_owned_branch(db, branch_id, user_id)
        link = find_link(db, memory_id, branch_id)
        if link is None:
            raise NotFound("Memory not found in this branch")
        if LinkRole(link.role) == LinkRole.origin:
            raise InvalidState("Cannot remove from origin branch. Use withdraw or delete instead.")

        previous = transition_link(link, LinkStatus.removed_by_user)
        record_user_event(
            db,
            context,
            EVENT_MEMORY_REMOVED_BY_USER,
            [memory_id],
            branch_id=branch_id,
            previous_status=previous.value,
        )
        db.commit()
        logger.info("memory_removed_from_branch", extra={"memory_id": memory_id, "branch_id": branch_id})
        return {"status": "ok", "success": True, "message": "Memory removed from your branch"}
    finally:
        db.close()


@service_tool
def list_memory_links(
    memory_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Links of a memory; visible to its author and to owners of linked branches."""
    user_id = require_user_id(context)
    _validate_id(memory_id, "memory_id")

    db = DB.SessionLocal()
    try:
        entry = _require_entry(db, memory_id)
        links = get_memory_links(db, memory_id)
        # Owners who removed or declined the memory lose sight of it.
        owner_ids = {
            link.branch.owner_id
            for link in links
            if link.branch is not None and LinkStatus(link.visibility_status) in LIVE_LINK_STATUSES
        }
        if entry.author_id != user_id and user_id not in owner_ids:
            raise AuthorizationDenied("You cannot view this memory's branches")
        shared_branches = get_shared_branches(db, memory_id)
        return {
            "status": "ok",
            "memory_id": memory_id,
            "is_shared": is_shared_memory(db, memory_id),
            "links": [_serialize_link(link) for link in links],
            "shared_branches": [_serialize_branch(branch) for branch in shared_branches],
            "most_restrictive_visibility": get_most_restrictive_visibility(
                db, [branch.id for branch in shared_branches]
            ).value,
        }
    finally:
        db.close()


__all__ = [
    "create_memory",
    "update_memory",
    "share_memory",
    "remove_memory_from_my_branch",
    "list_memory_links",
]
