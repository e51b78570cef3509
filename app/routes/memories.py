"""
Memory sharing and approval endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.deps import get_request_context
from app.responses import service_response
from app.schemas import BranchActionRequest, MemoryUpdateRequest, ShareRequest
from core.context import RequestContext
from core.services import memory_approval, memory_sharing


router = APIRouter(prefix="/api/memories", tags=["memories"])


@router.post("/{memory_id}/approve")
def approve_memory(
    memory_id: str,
    body: BranchActionRequest,
    context: RequestContext = Depends(get_request_context),
):
    """Approve a pending shared memory (pending_approval -> active)."""
    return service_response(
        memory_approval.approve_shared_memory(memory_id, body.branch_id, context=context)
    )


@router.delete("/{memory_id}/approve")
def decline_memory(
    memory_id: str,
    body: BranchActionRequest,
    context: RequestContext = Depends(get_request_context),
):
    """Decline a pending shared memory (pending_approval -> removed_by_user)."""
    return service_response(
        memory_approval.decline_shared_memory(memory_id, body.branch_id, context=context)
    )


@router.post("/{memory_id}/share")
def share_memory(
    memory_id: str,
    body: ShareRequest,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(
        memory_sharing.share_memory(memory_id, body.branch_ids, context=context)
    )


@router.post("/{memory_id}/remove-from-branch")
def remove_from_branch(
    memory_id: str,
    body: BranchActionRequest,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(
        memory_sharing.remove_memory_from_my_branch(memory_id, body.branch_id, context=context)
    )


@router.get("/{memory_id}/links")
def memory_links(
    memory_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(memory_sharing.list_memory_links(memory_id, context=context))


@router.patch("/{memory_id}")
def update_memory(
    memory_id: str,
    body: MemoryUpdateRequest,
    context: RequestContext = Depends(get_request_context),
):
    return service_response(
        memory_sharing.update_memory(memory_id, body.updates(), context=context)
    )
