"""
storysync/features/comments/store.py
Two-level comment threads per story.

Ordering:
- top-level comments are newest-first (server order on load, prepend on create)
- replies are oldest-first within their parent (append on create)

Nodes are immutable; every mutation swaps in a copy of the one node it touches
(and of its parent, for replies), leaving siblings untouched.
"""

from typing import Dict, List, Optional, Tuple

from storysync.core.errors import NotFoundError
from storysync.models.comment import (
    CommentBase,
    CommentPage,
    Pagination,
    Reply,
    ThreadComment,
    ThreadSnapshot,
)

# (story_id, top-level index, reply index or None)
_Location = Tuple[str, int, Optional[int]]


class CommentThreadStore:
    """Process-wide store of loaded comment threads keyed by story ID."""

    def __init__(self):
        self._threads: Dict[str, List[ThreadComment]] = {}
        self._pagination: Dict[str, Pagination] = {}

    def load(self, story_id: str, fetched: CommentPage, page: int = 1) -> ThreadSnapshot:
        """
        Merge the fetched `page` into the thread.

        Page 1 replaces the thread; later pages append, skipping comments that
        are already loaded (new comments prepended locally shift page bounds).
        The requested page number decides, not the echoed pagination, which
        defaults to page 1 when the server omits it.
        """
        if page <= 1 or story_id not in self._threads:
            self._threads[story_id] = list(fetched.comments)
        else:
            thread = self._threads[story_id]
            loaded = {c.comment_id for c in thread}
            thread.extend(c for c in fetched.comments if c.comment_id not in loaded)
        self._pagination[story_id] = fetched.pagination
        return self.snapshot(story_id)

    def insert_top_level(self, comment: ThreadComment) -> ThreadComment:
        thread = self._threads.setdefault(comment.story_id, [])
        if any(c.comment_id == comment.comment_id for c in thread):
            return comment
        thread.insert(0, comment)
        return comment

    def insert_reply(self, parent_id: str, reply: Reply) -> ThreadComment:
        """
        Append reply to its parent's replies.

        Raises:
            NotFoundError: no top-level comment `parent_id` is loaded for the
                reply's story. Nothing is mutated.
        """
        thread = self._threads.get(reply.story_id, [])
        for index, parent in enumerate(thread):
            if parent.comment_id == parent_id:
                if any(r.comment_id == reply.comment_id for r in parent.replies):
                    return parent
                updated = parent.model_copy(update={"replies": parent.replies + (reply,)})
                thread[index] = updated
                return updated
        raise NotFoundError(f"Parent comment {parent_id} is not loaded")

    def update(self, comment_id: str, new_content: str) -> CommentBase:
        """Set content and mark the node edited."""
        return self._replace(comment_id, lambda node: node.model_copy(update={"content": new_content, "edited": True}))

    def remove(self, comment_id: str) -> CommentBase:
        """Remove a top-level comment (with its replies) or a single reply."""
        story_id, index, reply_index = self._locate(comment_id)
        thread = self._threads[story_id]
        if reply_index is None:
            return thread.pop(index)
        parent = thread[index]
        removed = parent.replies[reply_index]
        replies = parent.replies[:reply_index] + parent.replies[reply_index + 1:]
        thread[index] = parent.model_copy(update={"replies": replies})
        return removed

    def toggle_like(self, comment_id: str, user_id: str) -> bool:
        """
        Flip user_id's membership in the comment's likes.

        Returns:
            True if the user now likes the comment.
        """
        node = self.find(comment_id)
        if node is None:
            raise NotFoundError(f"Comment {comment_id} is not loaded")
        liked = not node.is_liked_by(user_id)
        self.set_like(comment_id, user_id, liked)
        return liked

    def set_like(self, comment_id: str, user_id: str, liked: bool) -> CommentBase:
        def apply(node: CommentBase) -> CommentBase:
            likes = node.likes | {user_id} if liked else node.likes - {user_id}
            return node.model_copy(update={"likes": frozenset(likes)})

        return self._replace(comment_id, apply)

    def find(self, comment_id: str) -> Optional[CommentBase]:
        try:
            story_id, index, reply_index = self._locate(comment_id)
        except NotFoundError:
            return None
        node = self._threads[story_id][index]
        return node if reply_index is None else node.replies[reply_index]

    def snapshot(self, story_id: str) -> ThreadSnapshot:
        return ThreadSnapshot(
            story_id=story_id,
            comments=tuple(self._threads.get(story_id, ())),
            pagination=self._pagination.get(story_id),
        )

    def pagination(self, story_id: str) -> Optional[Pagination]:
        return self._pagination.get(story_id)

    def clear(self, story_id: Optional[str] = None) -> None:
        if story_id is None:
            self._threads.clear()
            self._pagination.clear()
            return
        self._threads.pop(story_id, None)
        self._pagination.pop(story_id, None)

    def _locate(self, comment_id: str) -> _Location:
        # top-level list first, then every parent's replies
        for story_id, thread in self._threads.items():
            for index, node in enumerate(thread):
                if node.comment_id == comment_id:
                    return story_id, index, None
            for index, node in enumerate(thread):
                for reply_index, reply in enumerate(node.replies):
                    if reply.comment_id == comment_id:
                        return story_id, index, reply_index
        raise NotFoundError(f"Comment {comment_id} is not loaded")

    def _replace(self, comment_id: str, change) -> CommentBase:
        story_id, index, reply_index = self._locate(comment_id)
        thread = self._threads[story_id]
        parent = thread[index]
        if reply_index is None:
            updated = change(parent)
            thread[index] = updated
            return updated
        updated = change(parent.replies[reply_index])
        replies = parent.replies[:reply_index] + (updated,) + parent.replies[reply_index + 1:]
        thread[index] = parent.model_copy(update={"replies": replies})
        return updated
