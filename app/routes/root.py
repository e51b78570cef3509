"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "description": "Family memories shared across branches",
        "endpoints": {
            "health": "/health",
            "memories": {
                "share": "/api/memories/{memory_id}/share",
                "approve": "/api/memories/{memory_id}/approve",
                "remove_from_branch": "/api/memories/{memory_id}/remove-from-branch",
                "links": "/api/memories/{memory_id}/links",
            },
            "branches": {
                "create": "/api/branches",
                "memories": "/api/branches/{branch_id}/memories",
                "preferences": "/api/branches/{branch_id}/preferences",
                "pending_approvals": "/api/branches/{branch_id}/pending-approvals",
                "shareable_branches": "/api/branches/{branch_id}/shareable-branches",
            },
        },
    }
