import os

os.environ.setdefault("DB_BACKEND", "sqlite")

from core.audit_constants import (
    EVENT_MEMORY_REMOVED_BY_USER,
    EVENT_MEMORY_SHARED,
    EVENT_TAG_APPROVED,
    EVENT_TAG_DECLINED,
    EVENT_TAGS_BATCH_APPROVED,
    EVENT_TAGS_BATCH_DECLINED,
)
from core.context import context_for_user
from core.models import AuditEvent, LinkStatus
from core.services import memory_approval, memory_sharing
from core.services.memory_links import find_link, is_shared_memory


def _share_to_b(family) -> dict:
    result = memory_sharing.share_memory(
        family["memory"].id, [family["branch_b"].id], context=family["alice_ctx"]
    )
    assert result["status"] == "ok"
    return result


def _status(db_session, memory_id, branch_id) -> LinkStatus:
    db_session.expire_all()
    return LinkStatus(find_link(db_session, memory_id, branch_id).visibility_status)


def test_share_then_approve(db_session, family):
    memory_id = family["memory"].id
    branch_b = family["branch_b"]

    shared = _share_to_b(family)
    assert shared["results"][0]["status"] == "pending_approval"
    assert shared["message"] == "Memory shared to 1 branches"
    assert _status(db_session, memory_id, branch_b.id) == LinkStatus.pending_approval

    approved = memory_approval.approve_shared_memory(memory_id, branch_b.id, context=family["bob_ctx"])
    assert approved["success"] is True
    assert approved["message"] == "Memory approved and is now visible in your branch"
    assert approved["link"]["visibility_status"] == "active"
    assert _status(db_session, memory_id, branch_b.id) == LinkStatus.active
    assert is_shared_memory(db_session, memory_id)

    again = memory_approval.approve_shared_memory(memory_id, branch_b.id, context=family["bob_ctx"])
    assert again["status"] == "error"
    assert again["http_status"] == 400
    assert again["error_type"] == "invalid_state"
    assert again["message"] == "Memory is not pending approval"


def test_decline_is_terminal(db_session, family):
    memory_id = family["memory"].id
    branch_b = family["branch_b"]
    _share_to_b(family)

    declined = memory_approval.decline_shared_memory(memory_id, branch_b.id, context=family["bob_ctx"])
    assert declined["message"] == "Memory declined"
    assert _status(db_session, memory_id, branch_b.id) == LinkStatus.removed_by_user

    approve_after = memory_approval.approve_shared_memory(memory_id, branch_b.id, context=family["bob_ctx"])
    assert approve_after["http_status"] == 400
    assert _status(db_session, memory_id, branch_b.id) == LinkStatus.removed_by_user


def test_only_branch_owner_decides(db_session, family):
    _share_to_b(family)

    result = memory_approval.approve_shared_memory(
        family["memory"].id, family["branch_b"].id, context=family["alice_ctx"]
    )

    assert result["http_status"] == 403
    assert result["error_type"] == "authorization_denied"
    assert _status(db_session, family["memory"].id, family["branch_b"].id) == LinkStatus.pending_approval


def test_decision_requires_caller(family):
    _share_to_b(family)

    for context in (None, context_for_user(None)):
        result = memory_approval.approve_shared_memory(
            family["memory"].id, family["branch_b"].id, context=context
        )
        assert result["http_status"] == 401
        assert result["message"] == "Unauthorized"


def test_missing_link_or_branch_is_not_found(family):
    no_link = memory_approval.approve_shared_memory(
        family["memory"].id, family["branch_b"].id, context=family["bob_ctx"]
    )
    assert no_link["http_status"] == 404
    assert no_link["message"] == "Shared memory not found"

    no_branch = memory_approval.decline_shared_memory(
        family["memory"].id, "missing-branch", context=family["bob_ctx"]
    )
    assert no_branch["http_status"] == 404


def test_missing_ids_are_validation_errors(family):
    result = memory_approval.approve_shared_memory(family["memory"].id, "", context=family["bob_ctx"])
    assert result["http_status"] == 400
    assert result["field"] == "branch_id"


def test_decisions_are_audited(db_session, family):
    memory_id = family["memory"].id
    branch_b = family["branch_b"]
    _share_to_b(family)
    memory_approval.approve_shared_memory(memory_id, branch_b.id, context=family["bob_ctx"])

    events = db_session.query(AuditEvent).order_by(AuditEvent.created_at.asc()).all()
    assert [event.event_type for event in events] == [EVENT_MEMORY_SHARED, EVENT_TAG_APPROVED]

    approval = events[-1]
    assert approval.user_id == family["bob"].id
    assert approval.target_ids == [memory_id]
    assert approval.metadata_ == {"branch_id": branch_b.id}


def test_failed_decision_writes_no_audit(db_session, family):
    _share_to_b(family)
    memory_approval.decline_shared_memory(family["memory"].id, family["branch_b"].id, context=family["alice_ctx"])

    event_types = [event.event_type for event in db_session.query(AuditEvent).all()]
    assert EVENT_TAG_DECLINED not in event_types


def test_pending_list_and_count(family):
    _share_to_b(family)

    listing = memory_approval.list_pending_approvals(family["branch_b"].id, context=family["bob_ctx"])
    assert listing["count"] == 1
    item = listing["pending"][0]
    assert item["memory_id"] == family["memory"].id
    assert item["memory"]["text"] == "Grandma's apple pie"
    assert item["memory"]["author"]["name"] == "alice"
    assert item["memory"]["branch"]["title"] == "Alice's branch"

    count = memory_approval.pending_approval_count(family["branch_b"].id, context=family["bob_ctx"])
    assert count["count"] == 1

    other = memory_approval.list_pending_approvals(family["branch_b"].id, context=family["alice_ctx"])
    assert other["http_status"] == 403


def test_batch_decisions_touch_only_own_pending_links(db_session, family, make_branch, make_memory):
    alice = family["alice"]
    branch_b = family["branch_b"]
    memories = [family["memory"], make_memory(alice, family["branch_a"], text="First snow")]
    for memory in memories:
        memory_sharing.share_memory(memory.id, [branch_b.id], context=family["alice_ctx"])
    link_ids = [find_link(db_session, memory.id, branch_b.id).id for memory in memories]
    foreign = make_branch(family["bob"], "Other pending", requires_approval=True)
    memory_sharing.share_memory(memories[0].id, [foreign.id], context=family["alice_ctx"])
    foreign_link_id = find_link(db_session, memories[0].id, foreign.id).id

    approved = memory_approval.batch_approve_memories(
        branch_b.id, [link_ids[0], foreign_link_id], context=family["bob_ctx"]
    )
    assert approved["affected"] == 1
    assert approved["skipped"] == [foreign_link_id]

    declined = memory_approval.batch_decline_memories(branch_b.id, link_ids, context=family["bob_ctx"])
    assert declined["affected"] == 1
    assert declined["link_ids"] == [link_ids[1]]

    assert _status(db_session, memories[0].id, branch_b.id) == LinkStatus.active
    assert _status(db_session, memories[1].id, branch_b.id) == LinkStatus.removed_by_branch
    assert _status(db_session, memories[0].id, foreign.id) == LinkStatus.pending_approval

    event_types = [event.event_type for event in db_session.query(AuditEvent).all()]
    assert event_types.count(EVENT_TAGS_BATCH_APPROVED) == 1
    assert event_types.count(EVENT_TAGS_BATCH_DECLINED) == 1


def test_owner_removes_shared_memory(db_session, family, make_branch):
    open_branch = make_branch(family["bob"], "Open branch")
    memory_id = family["memory"].id
    memory_sharing.share_memory(memory_id, [open_branch.id], context=family["alice_ctx"])

    origin = memory_sharing.remove_memory_from_my_branch(
        memory_id, family["branch_a"].id, context=family["alice_ctx"]
    )
    assert origin["error_type"] == "invalid_state"

    removed = memory_sharing.remove_memory_from_my_branch(memory_id, open_branch.id, context=family["bob_ctx"])
    assert removed["success"] is True
    assert _status(db_session, memory_id, open_branch.id) == LinkStatus.removed_by_user

    event = (
        db_session.query(AuditEvent)
        .filter(AuditEvent.event_type == EVENT_MEMORY_REMOVED_BY_USER)
        .one()
    )
    assert event.metadata_ == {"branch_id": open_branch.id, "previous_status": "active"}


def test_only_author_shares(family):
    result = memory_sharing.share_memory(family["memory"].id, [family["branch_b"].id], context=family["bob_ctx"])
    assert result["http_status"] == 403
    assert result["message"] == "Only the memory creator can share it"


def test_links_view_for_author_and_linked_owner(family, make_user):
    _share_to_b(family)

    for context in (family["alice_ctx"], family["bob_ctx"]):
        view = memory_sharing.list_memory_links(family["memory"].id, context=context)
        assert view["is_shared"] is True
        assert len(view["links"]) == 2
        assert view["most_restrictive_visibility"] == "PRIVATE"

    stranger = make_user("stranger")
    denied = memory_sharing.list_memory_links(family["memory"].id, context=context_for_user(stranger.id))
    assert denied["http_status"] == 403


def test_create_memory_with_share_targets(db_session, family, make_branch):
    open_branch = make_branch(family["bob"], "Open branch")

    result = memory_sharing.create_memory(
        family["branch_a"].id,
        "Summer at the lake",
        visibility="SHARED",
        share_to=[open_branch.id, family["branch_b"].id],
        context=family["alice_ctx"],
    )

    assert result["status"] == "created"
    assert [item["status"] for item in result["results"]] == ["active", "pending_approval"]
    memory_id = result["memory"]["id"]
    assert _status(db_session, memory_id, family["branch_a"].id) == LinkStatus.active


def test_update_memory_is_author_only(family):
    denied = memory_sharing.update_memory(family["memory"].id, {"text": "Edited"}, context=family["bob_ctx"])
    assert denied["http_status"] == 403

    updated = memory_sharing.update_memory(family["memory"].id, {"text": "Edited"}, context=family["alice_ctx"])
    assert updated["memory"]["text"] == "Edited"


def test_create_memory_commits_entry_with_origin(db_session, family, monkeypatch):
    from sqlalchemy.exc import OperationalError

    from core.models import Entry, LinkRole, MemoryBranchLink

    def failing_links(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("connection lost"))

    monkeypatch.setattr(memory_sharing, "create_memory_links", failing_links)

    result = memory_sharing.create_memory(family["branch_a"].id, "Lake day", context=family["alice_ctx"])
    assert result["http_status"] == 500

    for entry in db_session.query(Entry).all():
        origins = (
            db_session.query(MemoryBranchLink)
            .filter(MemoryBranchLink.memory_id == entry.id)
            .filter(MemoryBranchLink.role == LinkRole.origin)
            .count()
        )
        assert origins == 1


def test_share_audit_lands_with_each_link(db_session, family, make_branch, monkeypatch):
    from sqlalchemy.exc import OperationalError

    from core.services import memory_links

    first = make_branch(family["bob"], "First target")
    second = make_branch(family["bob"], "Second target")
    original = memory_links.get_branch_preferences

    def flaky_preferences(db, branch_id):
        if branch_id == second.id:
            raise OperationalError("SELECT", {}, Exception("connection lost"))
        return original(db, branch_id)

    monkeypatch.setattr(memory_links, "get_branch_preferences", flaky_preferences)

    result = memory_sharing.share_memory(
        family["memory"].id, [first.id, second.id], context=family["alice_ctx"]
    )
    assert result["http_status"] == 500

    assert find_link(db_session, family["memory"].id, first.id) is not None
    events = db_session.query(AuditEvent).filter(AuditEvent.event_type == EVENT_MEMORY_SHARED).all()
    assert [event.metadata_["target_branch_id"] for event in events] == [first.id]


def test_conflicting_share_is_not_audited(db_session, family):
    _share_to_b(family)
    _share_to_b(family)

    events = db_session.query(AuditEvent).filter(AuditEvent.event_type == EVENT_MEMORY_SHARED).count()
    assert events == 1


def test_declining_owner_loses_links_view(family):
    _share_to_b(family)
    memory_approval.decline_shared_memory(family["memory"].id, family["branch_b"].id, context=family["bob_ctx"])

    view = memory_sharing.list_memory_links(family["memory"].id, context=family["bob_ctx"])
    assert view["http_status"] == 403

    author_view = memory_sharing.list_memory_links(family["memory"].id, context=family["alice_ctx"])
    assert author_view["is_shared"] is False
