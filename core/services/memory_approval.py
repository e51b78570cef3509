"""
Approval workflow for memories shared into a branch.

Links created for a branch with ``requires_tag_approval`` start in
``pending_approval``.  The branch owner either approves (-> ``active``) or
declines (-> ``removed_by_user``; batch declines -> ``removed_by_branch``).
Every decision is recorded as an audit event in the same commit.
"""

from __future__ import annotations

from typing import Optional, Sequence

from core.audit import record_user_event
from core.audit_constants import (
    EVENT_TAG_APPROVED,
    EVENT_TAG_DECLINED,
    EVENT_TAGS_BATCH_APPROVED,
    EVENT_TAGS_BATCH_DECLINED,
)
from core.context import RequestContext, require_user_id
from core.db import DB
from core.errors import InvalidState, NotFound
from core.models import Entry, LinkStatus, MemoryBranchLink
from core.services.memory_links import find_link, transition_link
from core.services.memory_shared import (
    _require_owned_branch,
    _serialize_link,
    _validate_id,
    _validate_id_list,
    MAX_BATCH_LINKS,
    service_tool,
    logger,
)


def _pending_link_for_owner(db, memory_id: str, branch_id: str, user_id: str) -> MemoryBranchLink:
    _require_owned_branch(db, branch_id, user_id)
    link = find_link(db, memory_id, branch_id)
    if link is None:
        raise NotFound("Shared memory not found")
    if LinkStatus(link.visibility_status) != LinkStatus.pending_approval:
        raise InvalidState("Memory is not pending approval")
    return link


def _decide(
    memory_id: str,
    branch_id: str,
    context: Optional[RequestContext],
    target: LinkStatus,
    event_type: str,
) -> dict:
    user_id = require_user_id(context)
    _validate_id(memory_id, "memory_id")
    _validate_id(branch_id, "branch_id")

    db = DB.SessionLocal()
    try:
        link = _pending_link_for_owner(db, memory_id, branch_id, user_id)
        transition_link(link, target)
        record_user_event(db, context, event_type, [memory_id], branch_id=branch_id)
        db.commit()
        logger.info(
            "memory_tag_decision",
            extra={"memory_id": memory_id, "branch_id": branch_id, "status": target.value},
        )
        return _serialize_link(link)
    finally:
        db.close()


@service_tool
def approve_shared_memory(
    memory_id: str,
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Approve a pending shared memory so it becomes visible in the branch."""
    link = _decide(memory_id, branch_id, context, LinkStatus.active, EVENT_TAG_APPROVED)
    return {
        "status": "ok",
        "success": True,
        "message": "Memory approved and is now visible in your branch",
        "link": link,
    }


@service_tool
def decline_shared_memory(
    memory_id: str,
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Decline a pending shared memory; the link is kept as removed_by_user."""
    link = _decide(memory_id, branch_id, context, LinkStatus.removed_by_user, EVENT_TAG_DECLINED)
    return {
        "status": "ok",
        "success": True,
        "message": "Memory declined",
        "link": link,
    }


def _pending_query(db, branch_id: str):
    return (
        db.query(MemoryBranchLink)
        .filter(MemoryBranchLink.branch_id == branch_id)
        .filter(MemoryBranchLink.visibility_status == LinkStatus.pending_approval)
    )


@service_tool
def list_pending_approvals(
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """List memories waiting for the branch owner's decision, newest first."""
    user_id = require_user_id(context)
    _validate_id(branch_id, "branch_id")

    db = DB.SessionLocal()
    try:
        _require_owned_branch(db, branch_id, user_id)
        links = (
            _pending_query(db, branch_id)
            .order_by(MemoryBranchLink.created_at.desc())
            .all()
        )
        pending = []
        for link in links:
            entry: Entry = link.memory
            pending.append(
                {
                    "id": link.id,
                    "memory_id": link.memory_id,
                    "branch_id": link.branch_id,
                    "memory": {
                        "id": entry.id,
                        "text": entry.text,
                        "media_url": entry.media_url,
                        "audio_url": entry.audio_url,
                        "created_at": entry.created_at.isoformat() if entry.created_at else None,
                        "author": {"name": entry.author.name if entry.author else None},
                        "branch": {"title": entry.branch.title if entry.branch else None},
                    },
                }
            )
        return {"status": "ok", "count": len(pending), "pending": pending}
    finally:
        db.close()


@service_tool
def pending_approval_count(
    branch_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    user_id = require_user_id(context)
    _validate_id(branch_id, "branch_id")

    db = DB.SessionLocal()
    try:
        _require_owned_branch(db, branch_id, user_id)
        return {"status": "ok", "branch_id": branch_id, "count": _pending_query(db, branch_id).count()}
    finally:
        db.close()


def _batch_decide(
    branch_id: str,
    link_ids: Sequence[str],
    context: Optional[RequestContext],
    target: LinkStatus,
    event_type: str,
) -> dict:
    user_id = require_user_id(context)
    _validate_id(branch_id, "branch_id")
    _validate_id_list(link_ids, "link_ids", MAX_BATCH_LINKS)

    db = DB.SessionLocal()
    try:
        _require_owned_branch(db, branch_id, user_id)
        # Links of other branches or already decided are left untouched.
        links = (
            _pending_query(db, branch_id)
            .filter(MemoryBranchLink.id.in_(list(set(link_ids))))
            .all()
        )
        for link in links:
            transition_link(link, target)
        affected_ids = sorted(link.id for link in links)
        if links:
            record_user_event(
                db,
                context,
                event_type,
                sorted({link.memory_id for link in links}),
                count=len(links),
                branch_id=branch_id,
                link_ids=affected_ids,
            )
        db.commit()
        return {
            "status": "ok",
            "success": True,
            "affected": len(affected_ids),
            "link_ids": affected_ids,
            "skipped": sorted(set(link_ids) - set(affected_ids)),
        }
    finally:
        db.close()


@service_tool
def batch_approve_memories(
    branch_id: str,
    link_ids: Sequence[str],
    context: Optional[RequestContext] = None,
) -> dict:
    """Approve several pending links of one branch in a single commit."""
    return _batch_decide(branch_id, link_ids, context, LinkStatus.active, EVENT_TAGS_BATCH_APPROVED)


@service_tool
def batch_decline_memories(
    branch_id: str,
    link_ids: Sequence[str],
    context: Optional[RequestContext] = None,
) -> dict:
    """Decline several pending links of one branch (-> removed_by_branch)."""
    return _batch_decide(
        branch_id, link_ids, context, LinkStatus.removed_by_branch, EVENT_TAGS_BATCH_DECLINED
    )


__all__ = [
    "approve_shared_memory",
    "decline_shared_memory",
    "list_pending_approvals",
    "pending_approval_count",
    "batch_approve_memories",
    "batch_decline_memories",
]
