"""
storysync/models/intent.py
Mutation intents dispatched by UI callers, and the result every dispatch resolves to.
"""

from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from storysync.core.errors import AppError


class ToggleLike(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["toggle_like"] = "toggle_like"
    story_id: str


class ToggleListMembership(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["toggle_list"] = "toggle_list"
    story_id: str


class CreateComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["create_comment"] = "create_comment"
    story_id: str
    content: str = Field(min_length=1)
    parent_id: Optional[str] = None


class EditComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["edit_comment"] = "edit_comment"
    comment_id: str
    content: str = Field(min_length=1)


class DeleteComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["delete_comment"] = "delete_comment"
    comment_id: str


class ToggleCommentLike(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["toggle_comment_like"] = "toggle_comment_like"
    comment_id: str


EngagementIntent = Union[ToggleLike, ToggleListMembership]
CommentIntent = Union[CreateComment, EditComment, DeleteComment, ToggleCommentLike]
MutationIntent = Union[EngagementIntent, CommentIntent]


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one dispatched intent.

    `value` is whatever the intent produced on success (engagement record,
    comment, or None). `conflict` is set when the server disagreed with the
    optimistic guess and its value was taken.
    """

    intent: Any
    ok: bool
    value: Any = None
    error: Optional[AppError] = None
    conflict: bool = False
    request_id: Optional[str] = None

    @classmethod
    def succeeded(cls, intent, value=None, *, conflict: bool = False, request_id: Optional[str] = None) -> "MutationResult":
        return cls(intent=intent, ok=True, value=value, conflict=conflict, request_id=request_id)

    @classmethod
    def failed(cls, intent, error: AppError, value=None, *, request_id: Optional[str] = None) -> "MutationResult":
        return cls(intent=intent, ok=False, value=value, error=error, request_id=request_id)
