"""
storysync/features/engagement/store.py
Per-story engagement cache with provenance tracking.

Precedence rules:
- A server-confirmed flag always overwrites a fallback value.
- Once a flag has been confirmed by the server for a story, fallback seeding
  for that flag is ignored until the store is discarded (process restart).
- Optimistic values are an overlay: they never change provenance.
"""

from typing import Dict, List, Optional, Set, Union

from storysync.models.engagement import (
    EngagementRecord,
    LikeState,
    ListMembershipState,
    Provenance,
)
from storysync.models.intent import EngagementIntent, ToggleLike, ToggleListMembership

ServerValue = Union[LikeState, ListMembershipState]


class EngagementRecordStore:
    """Process-wide store of EngagementRecord keyed by story ID."""

    def __init__(self):
        self._records: Dict[str, EngagementRecord] = {}
        # story ids whose flag has ever been server-confirmed in this store's lifetime
        self._like_confirmed: Set[str] = set()
        self._list_confirmed: Set[str] = set()

    # Reads

    def record(self, story_id: str) -> EngagementRecord:
        """Current record, or an empty one with NONE provenance."""
        existing = self._records.get(story_id)
        if existing is None:
            return EngagementRecord(story_id=story_id)
        return existing

    snapshot = record

    def get_liked(self, story_id: str) -> bool:
        return self.record(story_id).liked

    def get_in_list(self, story_id: str) -> bool:
        return self.record(story_id).in_list

    def get_likes_count(self, story_id: str) -> int:
        return self.record(story_id).likes_count

    def stories_in_list(self) -> List[str]:
        return [sid for sid, rec in self._records.items() if rec.in_list]

    def current_value(self, intent: EngagementIntent) -> bool:
        """The flag an intent toggles, as currently displayed."""
        rec = self.record(intent.story_id)
        if isinstance(intent, ToggleLike):
            return rec.liked
        if isinstance(intent, ToggleListMembership):
            return rec.in_list
        raise TypeError(f"Unsupported engagement intent: {type(intent).__name__}")

    # Seeding

    def seed_from_server(self, story_id: str, liked: bool, likes_count: int, *, views: Optional[int] = None) -> EngagementRecord:
        """Authoritative like state from any server payload."""
        update = {
            "liked": bool(liked),
            "like_provenance": Provenance.SERVER_CONFIRMED,
            "likes_count": max(0, int(likes_count)),
        }
        if views is not None:
            update["views"] = max(0, int(views))
        self._like_confirmed.add(story_id)
        return self._put(self.record(story_id).model_copy(update=update))

    def seed_counts_from_server(self, story_id: str, likes_count: int, *, views: Optional[int] = None) -> EngagementRecord:
        """Counters from a payload that carries no per-user like flag."""
        update = {"likes_count": max(0, int(likes_count))}
        if views is not None:
            update["views"] = max(0, int(views))
        return self._put(self.record(story_id).model_copy(update=update))

    def seed_list_from_server(self, story_id: str, in_list: bool) -> EngagementRecord:
        self._list_confirmed.add(story_id)
        return self._put(
            self.record(story_id).model_copy(
                update={"in_list": bool(in_list), "list_provenance": Provenance.SERVER_CONFIRMED}
            )
        )

    def seed_fallback(self, story_id: str, liked: Optional[bool] = None, *, in_list: Optional[bool] = None) -> EngagementRecord:
        """First-paint seeding from the persisted marker; never beats the server."""
        update = {}
        if liked is not None and story_id not in self._like_confirmed:
            update["liked"] = bool(liked)
            update["like_provenance"] = Provenance.LOCAL_FALLBACK
        if in_list is not None and story_id not in self._list_confirmed:
            update["in_list"] = bool(in_list)
            update["list_provenance"] = Provenance.LOCAL_FALLBACK
        if not update:
            return self.record(story_id)
        return self._put(self.record(story_id).model_copy(update=update))

    # Optimistic protocol

    def apply_optimistic(self, intent: EngagementIntent, new_value: bool) -> EngagementRecord:
        rec = self.record(intent.story_id)
        if isinstance(intent, ToggleLike):
            count = rec.likes_count
            if new_value != rec.liked:
                count = count + 1 if new_value else max(0, count - 1)
            updated = rec.model_copy(update={"liked": bool(new_value), "likes_count": count})
        elif isinstance(intent, ToggleListMembership):
            updated = rec.model_copy(update={"in_list": bool(new_value)})
        else:
            raise TypeError(f"Unsupported engagement intent: {type(intent).__name__}")
        return self._put(updated)

    def commit(self, intent: EngagementIntent, server_value: ServerValue) -> EngagementRecord:
        """Replace the optimistic overlay with the server's answer."""
        if isinstance(intent, ToggleLike):
            return self.seed_from_server(intent.story_id, server_value.liked, server_value.likes_count)
        if isinstance(intent, ToggleListMembership):
            rec = self.seed_list_from_server(intent.story_id, server_value.added)
            story = server_value.story
            if story is not None:
                if story.is_liked_by_current_user is not None:
                    rec = self.seed_from_server(
                        intent.story_id, story.is_liked_by_current_user, story.likes_count, views=story.views
                    )
                else:
                    rec = self.seed_counts_from_server(intent.story_id, story.likes_count, views=story.views)
            return rec
        raise TypeError(f"Unsupported engagement intent: {type(intent).__name__}")

    def rollback(self, intent: EngagementIntent, prior_snapshot: EngagementRecord) -> EngagementRecord:
        """Restore the whole record to its pre-mutation snapshot.

        A confirmation observed meanwhile keeps its provenance tag.
        """
        restored = prior_snapshot
        story_id = intent.story_id
        upgrade = {}
        if story_id in self._like_confirmed and not prior_snapshot.like_confirmed:
            upgrade["like_provenance"] = Provenance.SERVER_CONFIRMED
        if story_id in self._list_confirmed and not prior_snapshot.list_confirmed:
            upgrade["list_provenance"] = Provenance.SERVER_CONFIRMED
        if upgrade:
            restored = prior_snapshot.model_copy(update=upgrade)
        return self._put(restored)

    def clear(self) -> None:
        """Drop all records (session end / tests)."""
        self._records.clear()
        self._like_confirmed.clear()
        self._list_confirmed.clear()

    def _put(self, record: EngagementRecord) -> EngagementRecord:
        self._records[record.story_id] = record
        return record

    def __contains__(self, story_id: str) -> bool:
        return story_id in self._records

    def __len__(self) -> int:
        return len(self._records)
