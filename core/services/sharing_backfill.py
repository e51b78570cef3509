"""
One-off backfill for data created before cross-branch sharing existed.

1. Every live entry gets its origin link (active).
2. Every non-archived branch gets its default preferences row.

Both steps are idempotent.
"""

from __future__ import annotations

from core.models import (
    Branch,
    BranchPreferences,
    Entry,
    EntryStatus,
    LinkRole,
    LinkStatus,
    MemoryBranchLink,
)
from core.services.branch_preferences import DEFAULT_PREFERENCES
from core.services.memory_shared import logger

PROGRESS_EVERY = 100


def backfill_origin_links(db, dry_run: bool = False) -> dict:
    entries = (
        db.query(Entry.id, Entry.branch_id)
        .filter(Entry.status.in_([EntryStatus.ACTIVE, EntryStatus.WITHDRAWN]))
        .all()
    )
    linked = {
        row[0]
        for row in db.query(MemoryBranchLink.memory_id)
        .filter(MemoryBranchLink.role == LinkRole.origin)
        .all()
    }

    created = 0
    skipped = 0
    for entry_id, branch_id in entries:
        if entry_id in linked:
            skipped += 1
            continue
        if not dry_run:
            db.add(
                MemoryBranchLink(
                    memory_id=entry_id,
                    branch_id=branch_id,
                    role=LinkRole.origin,
                    visibility_status=LinkStatus.active,
                )
            )
        created += 1
        if created % PROGRESS_EVERY == 0:
            logger.info(f"Origin link backfill progress: {created} links")
    if not dry_run:
        db.commit()
    logger.info(f"Origin links: created={created} skipped={skipped} dry_run={dry_run}")
    return {"created": created, "skipped": skipped}


def backfill_branch_preferences(db, dry_run: bool = False) -> dict:
    branch_ids = [row[0] for row in db.query(Branch.id).filter(Branch.archived.is_(False)).all()]
    existing = {row[0] for row in db.query(BranchPreferences.branch_id).all()}

    created = 0
    skipped = 0
    for branch_id in branch_ids:
        if branch_id in existing:
            skipped += 1
            continue
        if not dry_run:
            db.add(BranchPreferences(branch_id=branch_id, **DEFAULT_PREFERENCES))
        created += 1
    if not dry_run:
        db.commit()
    logger.info(f"Branch preferences: created={created} skipped={skipped} dry_run={dry_run}")
    return {"created": created, "skipped": skipped}


def run_sharing_backfill(db, dry_run: bool = False) -> dict:
    return {
        "status": "ok",
        "dry_run": dry_run,
        "origin_links": backfill_origin_links(db, dry_run=dry_run),
        "branch_preferences": backfill_branch_preferences(db, dry_run=dry_run),
    }


__all__ = [
    "backfill_origin_links",
    "backfill_branch_preferences",
    "run_sharing_backfill",
]
