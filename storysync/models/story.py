"""
storysync/models/story.py
Story payloads as returned by the Content API (only the engagement-relevant fields).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoryPayload(BaseModel):
    """Story as served by GET /api/stories/{id} and list endpoints"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    story_id: str = Field(alias="_id")
    title: Optional[str] = None
    # Absent on listings served without a credential
    is_liked_by_current_user: Optional[bool] = Field(default=None, alias="isLikedByCurrentUser")
    likes_count: int = Field(default=0, ge=0, alias="likesCount")
    views: int = Field(default=0, ge=0)


class MyListPayload(BaseModel):
    """Response of GET /api/my-list"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    stories: List[StoryPayload] = Field(default_factory=list)
