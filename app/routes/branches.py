"""
Branch endpoints: creation, memories, preferences and pending approvals.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.deps import get_request_context
from app.responses import service_response
from app.schemas import (
    BranchCreateRequest,
    LinkBatchRequest,
    MemoryCreateRequest,
    PreferencesUpdateRequest,
)
from core.context import RequestContext
from core.services import branch_settings, memory_approval, memory_sharing


router = APIRouter(prefix="/api/branches", tags=["branches"])


@router.post("")
def create_branch(
    body: BranchCreateRequest,
    context: RequestContext = Depends(get_request_context),
):
    result = branch_settings.create_branch(
        body.title,
        grove_id=body.grove_id,
        person_id=body.person_id,
        is_legacy=body.is_legacy,
        context=context,
    )
    return service_response(result, status_code=201)


@router.post("/{branch_id}/memories")
def create_memory(
    branch_id: str,
    body: MemoryCreateRequest,
    context: RequestContext = Depends(get_request_context),
):
    result = memory_sharing.create_memory(
        branch_id,
        body.text,
        visibility=body.visibility,
        media_url=body.media_url,
        audio_url=body.audio_url,
        share_to=body.share_to,
        context=context,
    )
    return service_response(result, status_code=201)


@router.get("/{branch_id}/preferences")
def get_preferences(
    branch_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(branch_settings.get_preferences(branch_id, context=context))


@router.patch("/{branch_id}/preferences")
def update_preferences(
    branch_id: str,
    body: PreferencesUpdateRequest,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(
        branch_settings.set_preferences(branch_id, body.updates(), context=context)
    )


@router.get("/{branch_id}/pending-approvals")
def pending_approvals(
    branch_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(memory_approval.list_pending_approvals(branch_id, context=context))


@router.get("/{branch_id}/pending-approvals/count")
def pending_approvals_count(
    branch_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(memory_approval.pending_approval_count(branch_id, context=context))


@router.post("/{branch_id}/pending-approvals/approve")
def batch_approve(
    branch_id: str,
    body: LinkBatchRequest,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(
        memory_approval.batch_approve_memories(branch_id, body.link_ids, context=context)
    )


@router.post("/{branch_id}/pending-approvals/decline")
def batch_decline(
    branch_id: str,
    body: LinkBatchRequest,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(
        memory_approval.batch_decline_memories(branch_id, body.link_ids, context=context)
    )


@router.get("/{branch_id}/shareable-branches")
def shareable_branches(
    branch_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(branch_settings.list_shareable_branches(branch_id, context=context))
