"""
Audit trail for sharing decisions.

Rows are metadata-only: ids, statuses and flags.  Memory content (text,
media links, transcripts) is refused at write time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import and_, or_

from core.config import MAX_AUDIT_LIMIT, MAX_ID_LENGTH
from core.models import AuditEvent

ALLOWED_ACTOR_TYPES = {"user", "system"}
ALLOWED_TARGET_TYPES = {"memory", "branch"}

# Matched as substrings of normalized keys, so "memory_text" is caught too.
CONTENT_KEY_TOKENS = ("text", "content", "media_url", "audio_url", "transcript")
MAX_METADATA_STRING_LENGTH = 500


def _is_content_key(key: str) -> bool:
    normalized = key.strip().lower().replace("-", "_")
    return any(token in normalized for token in CONTENT_KEY_TOKENS)


def _check_metadata(value: Any, path: str = "metadata") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path} keys must be strings")
            if _is_content_key(key):
                raise ValueError(f"metadata key '{key}' is not allowed")
            _check_metadata(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_metadata(item, path)
    elif isinstance(value, str) and len(value) > MAX_METADATA_STRING_LENGTH:
        raise ValueError(f"metadata value too long at '{path}'")


def _target_list(target_ids: Iterable[str]) -> list[str]:
    if isinstance(target_ids, str) or not isinstance(target_ids, (list, tuple, set)):
        raise ValueError("target_ids must be a list of ids")
    ids = list(target_ids)
    for item in ids:
        if not isinstance(item, str) or not item or len(item) > MAX_ID_LENGTH:
            raise ValueError("target_ids must contain non-empty id strings")
    return ids


def log_event(
    db,
    *,
    event_type: str,
    actor_type: str,
    target_type: str,
    target_ids: Iterable[str],
    actor_id: Optional[str] = None,
    user_id: Optional[str] = None,
    count_affected: Optional[int] = None,
    reason: Optional[str] = None,
    request_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> AuditEvent:
    """
    Stage an audit event on ``db``.

    Nothing is committed here: the row is written by the caller's commit,
    together with the change it describes.
    """
    if not isinstance(event_type, str) or not event_type:
        raise ValueError("event_type must be a non-empty string")
    if actor_type not in ALLOWED_ACTOR_TYPES:
        raise ValueError(f"actor_type must be one of: {'|'.join(sorted(ALLOWED_ACTOR_TYPES))}")
    if target_type not in ALLOWED_TARGET_TYPES:
        raise ValueError(f"target_type must be one of: {'|'.join(sorted(ALLOWED_TARGET_TYPES))}")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValueError("metadata must be a dict")
    _check_metadata(metadata or {})

    event = AuditEvent(
        created_at=datetime.utcnow(),
        event_type=event_type,
        actor_type=actor_type,
        actor_id=actor_id,
        user_id=user_id,
        target_type=target_type,
        target_ids=_target_list(target_ids),
        count_affected=count_affected,
        reason=reason,
        request_id=request_id,
        metadata_=metadata,
    )
    db.add(event)
    return event


def record_user_event(
    db,
    context,
    event_type: str,
    target_ids: Iterable[str],
    target_type: str = "memory",
    count: int = 1,
    **metadata,
) -> AuditEvent:
    """Stage an event acting on behalf of the context's authenticated user."""
    user_id = context.auth.user_id
    return log_event(
        db,
        event_type=event_type,
        actor_type="user",
        actor_id=user_id,
        user_id=user_id,
        target_type=target_type,
        target_ids=target_ids,
        count_affected=count,
        request_id=context.request_id,
        metadata=metadata or None,
    )


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _after_cursor(db, query, cursor: str):
    anchor = db.get(AuditEvent, cursor)
    if anchor is None:
        return query
    return query.filter(
        or_(
            AuditEvent.created_at < anchor.created_at,
            and_(
                AuditEvent.created_at == anchor.created_at,
                AuditEvent.event_id < anchor.event_id,
            ),
        )
    )


def _event_dict(row: AuditEvent) -> dict:
    return {
        "event_id": row.event_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "event_type": row.event_type,
        "event_version": row.event_version,
        "actor_type": row.actor_type,
        "actor_id": row.actor_id,
        "user_id": row.user_id,
        "target_type": row.target_type,
        "target_ids": row.target_ids,
        "count_affected": row.count_affected,
        "reason": row.reason,
        "request_id": row.request_id,
        "metadata": row.metadata_,
    }


def list_audit_events(
    db,
    *,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    target_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: int = 100,
    cursor: Optional[str] = None,
) -> dict:
    """Newest-first page of audit events; pass ``next_cursor`` back for the next page."""
    if limit <= 0:
        raise ValueError("limit must be positive")
    limit = min(limit, MAX_AUDIT_LIMIT)

    query = db.query(AuditEvent)
    if user_id:
        query = query.filter(AuditEvent.user_id == user_id)
    if event_type:
        query = query.filter(AuditEvent.event_type == event_type)
    start, end = _parse_dt(date_from), _parse_dt(date_to)
    if start:
        query = query.filter(AuditEvent.created_at >= start)
    if end:
        query = query.filter(AuditEvent.created_at <= end)
    ordered = query.order_by(AuditEvent.created_at.desc(), AuditEvent.event_id.desc())

    # target_ids is a JSON list and is matched in Python to stay portable across
    # backends, so keep scanning older batches until the page is full.
    matches: list[AuditEvent] = []
    last_scanned: Optional[AuditEvent] = None
    while len(matches) < limit:
        batch_query = _after_cursor(db, ordered, cursor) if cursor else ordered
        batch = batch_query.limit(limit).all()
        for row in batch:
            last_scanned = row
            if not target_id or target_id in (row.target_ids or []):
                matches.append(row)
                if len(matches) == limit:
                    break
        if len(batch) < limit:
            break
        cursor = last_scanned.event_id

    return {
        "status": "ok",
        "count": len(matches),
        "events": [_event_dict(row) for row in matches],
        "next_cursor": last_scanned.event_id if last_scanned else None,
    }


__all__ = [
    "log_event",
    "record_user_event",
    "list_audit_events",
    "ALLOWED_ACTOR_TYPES",
    "ALLOWED_TARGET_TYPES",
]
