"""
storysync/models/engagement.py
Per-story engagement record with provenance, plus the server responses that feed it.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storysync.models.story import StoryPayload


class Provenance(str, Enum):
    """Where an engagement flag's value came from."""

    NONE = "none"
    LOCAL_FALLBACK = "local_fallback"
    SERVER_CONFIRMED = "server_confirmed"


class EngagementRecord(BaseModel):
    """Best-known engagement state of one story for the current user.

    Immutable: every store write replaces the whole record, so a record
    captured before a mutation is an exact rollback snapshot.
    """

    model_config = ConfigDict(frozen=True)

    story_id: str
    liked: bool = False
    like_provenance: Provenance = Provenance.NONE
    in_list: bool = False
    list_provenance: Provenance = Provenance.NONE
    likes_count: int = Field(default=0, ge=0, description="Authoritative only from server")
    views: int = Field(default=0, ge=0, description="Display only")

    @property
    def like_confirmed(self) -> bool:
        return self.like_provenance is Provenance.SERVER_CONFIRMED

    @property
    def list_confirmed(self) -> bool:
        return self.list_provenance is Provenance.SERVER_CONFIRMED


class LikeState(BaseModel):
    """Response of POST /api/stories/{id}/like"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    liked: bool
    likes_count: int = Field(ge=0, alias="likesCount")
    message: Optional[str] = None


class ListMembershipState(BaseModel):
    """Response of POST /api/my-list/{id}"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    added: bool
    story: Optional[StoryPayload] = None
    message: Optional[str] = None
