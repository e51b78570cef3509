"""
Cross-branch sharing helpers.

Every memory has exactly one ``origin`` link (the branch it was written in)
and any number of ``shared`` links.  Links are never deleted; removal and
approval decisions are status transitions on the link row.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from core.errors import InvalidState, NotFound, ValidationIssue
from core.models import (
    Branch,
    BranchPreferences,
    Entry,
    EntryVisibility,
    LinkRole,
    LinkStatus,
    LIVE_LINK_STATUSES,
    MemoryBranchLink,
)
from core.services.branch_preferences import get_branch_preferences
from core.services.memory_shared import logger


# Most restrictive first
VISIBILITY_PRECEDENCE = (
    EntryVisibility.PRIVATE,
    EntryVisibility.SHARED,
    EntryVisibility.LEGACY,
)

ALLOWED_TRANSITIONS = {
    LinkStatus.pending_approval: {
        LinkStatus.active,
        LinkStatus.removed_by_user,
        LinkStatus.removed_by_branch,
    },
    LinkStatus.active: {
        LinkStatus.removed_by_user,
        LinkStatus.removed_by_branch,
    },
}

PROPAGATED_FIELDS = ("text", "media_url", "audio_url", "visibility")


@dataclass
class ShareOutcome:
    """Result of linking a memory into one target branch."""

    branch_id: str
    success: bool
    action: str  # created | skipped | conflict | rejected
    status: Optional[str] = None
    link_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


def find_link(db, memory_id: str, branch_id: str) -> Optional[MemoryBranchLink]:
    return (
        db.query(MemoryBranchLink)
        .filter(MemoryBranchLink.memory_id == memory_id)
        .filter(MemoryBranchLink.branch_id == branch_id)
        .first()
    )


def _find_origin_link(db, memory_id: str) -> Optional[MemoryBranchLink]:
    return (
        db.query(MemoryBranchLink)
        .filter(MemoryBranchLink.memory_id == memory_id)
        .filter(MemoryBranchLink.role == LinkRole.origin)
        .first()
    )


def transition_link(link: MemoryBranchLink, target: LinkStatus) -> LinkStatus:
    """Move a link to ``target``; returns the previous status."""
    current = LinkStatus(link.visibility_status)
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Cannot change link from {current.value} to {target.value}")
    link.visibility_status = target
    return current


def get_memory_links(db, memory_id: str) -> list[MemoryBranchLink]:
    return (
        db.query(MemoryBranchLink)
        .filter(MemoryBranchLink.memory_id == memory_id)
        .order_by(MemoryBranchLink.created_at.asc())
        .all()
    )


def can_share_to_branch(db, branch_id: str) -> bool:
    """True unless the branch has opted out; does not create preferences."""
    preferences = (
        db.query(BranchPreferences)
        .filter(BranchPreferences.branch_id == branch_id)
        .first()
    )
    if not preferences:
        return True
    return preferences.can_be_tagged


def get_shared_branches(db, memory_id: str) -> list[Branch]:
    """Branches where the memory is active or awaiting approval."""
    return (
        db.query(Branch)
        .join(MemoryBranchLink, MemoryBranchLink.branch_id == Branch.id)
        .filter(MemoryBranchLink.memory_id == memory_id)
        .filter(MemoryBranchLink.visibility_status.in_(LIVE_LINK_STATUSES))
        .order_by(MemoryBranchLink.created_at.asc())
        .all()
    )


def get_most_restrictive_visibility(db, branch_ids: Sequence[str]) -> EntryVisibility:
    """
    Most restrictive visibility among entries that originate in ``branch_ids``.

    PRIVATE dominates SHARED dominates LEGACY.  With no branches, or no
    entries in them, the answer is PRIVATE.
    """
    if not branch_ids:
        return EntryVisibility.PRIVATE

    rows = (
        db.query(Entry.visibility)
        .filter(Entry.branch_id.in_(list(branch_ids)))
        .distinct()
        .all()
    )
    found = {EntryVisibility(row[0]) for row in rows}
    for visibility in VISIBILITY_PRECEDENCE:
        if visibility in found:
            return visibility
    return EntryVisibility.PRIVATE


def propagate_memory_update(db, memory_id: str, updates: dict) -> Entry:
    """
    Update the memory itself.

    All links point at the same entry row, so every branch sees the change.
    """
    unknown = sorted(set(updates) - set(PROPAGATED_FIELDS))
    if unknown:
        raise ValidationIssue(
            f"updates has unknown keys: {unknown}",
            field="updates",
            error_type="invalid_key",
        )
    entry = db.get(Entry, memory_id)
    if entry is None:
        raise NotFound("Memory not found")
    for key, value in updates.items():
        if key == "visibility":
            try:
                value = EntryVisibility(value)
            except ValueError as exc:
                raise ValidationIssue(
                    "visibility must be PRIVATE, SHARED or LEGACY",
                    field="visibility",
                    error_type="invalid_value",
                ) from exc
        setattr(entry, key, value)
    db.commit()
    return entry


def get_origin_branch(db, memory_id: str) -> Optional[Branch]:
    origin_link = _find_origin_link(db, memory_id)
    return origin_link.branch if origin_link else None


def ensure_origin_link(db, memory_id: str, origin_branch_id: str) -> MemoryBranchLink:
    """Return the memory's origin link, creating it (active) if missing."""
    origin_link = _find_origin_link(db, memory_id)
    if origin_link:
        if origin_link.branch_id != origin_branch_id:
            raise InvalidState("Memory already has a different origin branch")
        return origin_link

    origin_link = MemoryBranchLink(
        memory_id=memory_id,
        branch_id=origin_branch_id,
        role=LinkRole.origin,
        visibility_status=LinkStatus.active,
    )
    db.add(origin_link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        origin_link = _find_origin_link(db, memory_id)
        if origin_link is None or origin_link.branch_id != origin_branch_id:
            raise InvalidState("Memory already has a different origin branch")
    return origin_link


def _link_target(
    db,
    memory_id: str,
    branch_id: str,
    on_created: Optional[Callable[[str, str], None]] = None,
) -> ShareOutcome:
    branch = db.get(Branch, branch_id)
    if branch is None or branch.archived:
        return ShareOutcome(branch_id, False, "rejected", error="Branch not found")

    preferences = get_branch_preferences(db, branch_id)
    if not preferences.can_be_tagged:
        return ShareOutcome(
            branch_id, False, "rejected", error="This branch does not accept shared tags"
        )

    existing = find_link(db, memory_id, branch_id)
    if existing:
        return _conflict_outcome(existing)

    status = (
        LinkStatus.pending_approval
        if preferences.requires_tag_approval
        else LinkStatus.active
    )
    link = MemoryBranchLink(
        memory_id=memory_id,
        branch_id=branch_id,
        role=LinkRole.shared,
        visibility_status=status,
    )
    db.add(link)
    if on_created is not None:
        on_created(branch_id, status.value)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent share of the same pair.
        db.rollback()
        existing = find_link(db, memory_id, branch_id)
        if existing is None:
            raise
        return _conflict_outcome(existing)
    return ShareOutcome(branch_id, True, "created", status=status.value, link_id=link.id)


def _conflict_outcome(existing: MemoryBranchLink) -> ShareOutcome:
    status = LinkStatus(existing.visibility_status)
    if status in LIVE_LINK_STATUSES:
        error = "Already shared to this branch"
    else:
        error = "Memory was removed from this branch"
    return ShareOutcome(
        existing.branch_id,
        False,
        "conflict",
        status=status.value,
        link_id=existing.id,
        error=error,
    )


def create_memory_links(
    db,
    memory_id: str,
    origin_branch_id: str,
    target_branch_ids: Iterable[str],
    on_created: Optional[Callable[[str, str], None]] = None,
) -> list[ShareOutcome]:
    """
    Link a memory to its origin branch and to each target branch.

    Each target is committed on its own; a failure part-way through leaves
    the earlier targets linked.  Targets that require approval get a
    ``pending_approval`` link, all others an ``active`` one.
    ``on_created(branch_id, status)`` runs before each new link is committed,
    so anything it stages lands in the same commit.
    """
    ensure_origin_link(db, memory_id, origin_branch_id)

    outcomes: list[ShareOutcome] = []
    seen: set[str] = set()
    for branch_id in target_branch_ids:
        if branch_id == origin_branch_id or branch_id in seen:
            outcomes.append(ShareOutcome(branch_id, False, "skipped", error="Duplicate or origin branch"))
            continue
        seen.add(branch_id)
        outcome = _link_target(db, memory_id, branch_id, on_created)
        logger.info(
            "memory_link_outcome",
            extra={"memory_id": memory_id, "branch_id": branch_id, "action": outcome.action},
        )
        outcomes.append(outcome)
    return outcomes


def remove_memory_from_branch(
    db,
    memory_id: str,
    branch_id: str,
    removed_by_user: bool = False,
) -> MemoryBranchLink:
    """Non-destructive removal: the link row stays with a removed status."""
    link = find_link(db, memory_id, branch_id)
    if link is None:
        raise NotFound("Memory not found in this branch")
    target = LinkStatus.removed_by_user if removed_by_user else LinkStatus.removed_by_branch
    transition_link(link, target)
    db.commit()
    return link


def is_shared_memory(db, memory_id: str) -> bool:
    link_count = (
        db.query(MemoryBranchLink)
        .filter(MemoryBranchLink.memory_id == memory_id)
        .filter(MemoryBranchLink.visibility_status.in_(LIVE_LINK_STATUSES))
        .count()
    )
    return link_count > 1


__all__ = [
    "ShareOutcome",
    "ALLOWED_TRANSITIONS",
    "VISIBILITY_PRECEDENCE",
    "find_link",
    "transition_link",
    "get_memory_links",
    "can_share_to_branch",
    "get_shared_branches",
    "get_most_restrictive_visibility",
    "propagate_memory_update",
    "get_origin_branch",
    "ensure_origin_link",
    "create_memory_links",
    "remove_memory_from_branch",
    "is_shared_memory",
]
