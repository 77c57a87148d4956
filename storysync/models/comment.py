"""
storysync/models/comment.py
Comment thread models: a fixed two-level shape.

ThreadComment holds replies; Reply has no replies field at all, so a third
level cannot be represented.
"""

from datetime import datetime
from typing import Any, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CommentBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    comment_id: str = Field(alias="_id")
    story_id: str = Field(alias="story")
    author_id: str = Field(alias="user")
    author_name: Optional[str] = None
    content: str
    created_at: datetime = Field(alias="createdAt")
    edited: bool = Field(default=False, alias="isEdited")
    parent_id: Optional[str] = Field(default=None, alias="parentComment")
    likes: FrozenSet[str] = Field(default_factory=frozenset)

    @model_validator(mode="before")
    @classmethod
    def _flatten_populated_refs(cls, data: Any) -> Any:
        # The API populates `user` (and sometimes `parentComment`) as objects
        if not isinstance(data, dict):
            return data
        data = dict(data)
        user = data.get("user")
        if isinstance(user, dict):
            data["user"] = user.get("_id")
            name = " ".join(p for p in (user.get("firstName"), user.get("lastName")) if p)
            if name and "author_name" not in data:
                data["author_name"] = name
        parent = data.get("parentComment")
        if isinstance(parent, dict):
            data["parentComment"] = parent.get("_id")
        return data

    @property
    def likes_count(self) -> int:
        return len(self.likes)

    def is_liked_by(self, user_id: str) -> bool:
        return user_id in self.likes


class Reply(CommentBase):
    """Second-level comment; always has a parent."""

    parent_id: str = Field(alias="parentComment")


class ThreadComment(CommentBase):
    """Top-level comment with its chronologically ordered replies."""

    replies: Tuple[Reply, ...] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _drop_unpopulated_replies(cls, data: Any) -> Any:
        # Unpopulated replies arrive as bare ids; the next load brings them in full
        if isinstance(data, dict) and isinstance(data.get("replies"), list):
            data = dict(data)
            data["replies"] = [r for r in data["replies"] if isinstance(r, (dict, Reply))]
        return data


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    current_page: int = Field(default=1, ge=1, alias="currentPage")
    total_pages: int = Field(default=1, ge=0, alias="totalPages")
    total_comments: int = Field(default=0, ge=0, alias="totalComments")
    has_next: bool = Field(default=False, alias="hasNext")
    has_prev: bool = Field(default=False, alias="hasPrev")


class CommentPage(BaseModel):
    """Response of GET /api/comments/stories/{id}/comments"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    comments: List[ThreadComment] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class ThreadSnapshot(BaseModel):
    """Read-only view of one story's loaded thread."""

    model_config = ConfigDict(frozen=True)

    story_id: str
    comments: Tuple[ThreadComment, ...] = ()
    pagination: Optional[Pagination] = None

    def find(self, comment_id: str) -> Optional[CommentBase]:
        for comment in self.comments:
            if comment.comment_id == comment_id:
                return comment
            for reply in comment.replies:
                if reply.comment_id == comment_id:
                    return reply
        return None


def parse_comment(data: Any) -> CommentBase:
    """Parse a single comment payload into its level-specific model."""
    if isinstance(data, CommentBase):
        return data
    parent = data.get("parentComment") if isinstance(data, dict) else None
    if parent:
        return Reply.model_validate(data)
    return ThreadComment.model_validate(data)
