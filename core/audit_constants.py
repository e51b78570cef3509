"""
Canonical audit event type strings.
"""

EVENT_MEMORY_SHARED = "memory.shared"
EVENT_TAG_APPROVED = "memory.tag_approved"
EVENT_TAG_DECLINED = "memory.tag_declined"
EVENT_TAGS_BATCH_APPROVED = "memory.tags_batch_approved"
EVENT_TAGS_BATCH_DECLINED = "memory.tags_batch_declined"
EVENT_MEMORY_REMOVED_BY_USER = "memory.removed_by_user"
EVENT_BRANCH_PREFERENCES_UPDATED = "branch.preferences_updated"

__all__ = [
    "EVENT_MEMORY_SHARED",
    "EVENT_TAG_APPROVED",
    "EVENT_TAG_DECLINED",
    "EVENT_TAGS_BATCH_APPROVED",
    "EVENT_TAGS_BATCH_DECLINED",
    "EVENT_MEMORY_REMOVED_BY_USER",
    "EVENT_BRANCH_PREFERENCES_UPDATED",
]
