"""
Pydantic request models for the Firefly Grove API.

Bodies use the camelCase keys the web client sends.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BranchActionRequest(_Body):
    """Target branch of an approve / decline / remove action."""

    branch_id: str = Field(..., alias="branchId", min_length=1, description="Branch ID")


class ShareRequest(_Body):
    branch_ids: List[str] = Field(..., alias="branchIds", min_length=1, description="Branches to share to")


class LinkBatchRequest(_Body):
    link_ids: List[str] = Field(..., alias="linkIds", min_length=1, description="Pending link IDs")


class PreferencesUpdateRequest(_Body):
    can_be_tagged: Optional[StrictBool] = Field(None, alias="canBeTagged")
    requires_tag_approval: Optional[StrictBool] = Field(None, alias="requiresTagApproval")
    visible_in_cross_shares: Optional[StrictBool] = Field(None, alias="visibleInCrossShares")

    def updates(self) -> dict:
        return {key: value for key, value in self.model_dump(exclude_unset=True).items() if value is not None}


class BranchCreateRequest(_Body):
    title: str = Field(..., min_length=1)
    grove_id: Optional[str] = Field(None, alias="groveId")
    person_id: Optional[str] = Field(None, alias="personId")
    is_legacy: bool = Field(False, alias="isLegacy")


class MemoryCreateRequest(_Body):
    text: str = Field(..., min_length=1)
    visibility: str = Field("PRIVATE", description="PRIVATE | SHARED | LEGACY")
    media_url: Optional[str] = Field(None, alias="mediaUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    share_to: Optional[List[str]] = Field(None, alias="shareTo")


class MemoryUpdateRequest(_Body):
    text: Optional[str] = None
    media_url: Optional[str] = Field(None, alias="mediaUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    visibility: Optional[str] = None

    def updates(self) -> dict:
        return self.model_dump(exclude_unset=True)
