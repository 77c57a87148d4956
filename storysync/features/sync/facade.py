"""
storysync/features/sync/facade.py
The single entry point UI components use for engagement and comments.

UI code reads derived state (flags, counts, thread snapshots) and dispatches
mutation intents; it never touches the stores directly.
"""

from typing import Callable, Iterable, List, Optional, Union

from storysync.core.errors import AppError, NotFoundError
from storysync.core.logging import bind_request_id, log_event
from storysync.core.metrics import METRICS, comment_mutations_total, view_increments_total
from storysync.features.comments.store import CommentThreadStore
from storysync.features.engagement.coordinator import MutationCoordinator
from storysync.features.engagement.store import EngagementRecordStore
from storysync.features.views.ledger import SessionViewLedger
from storysync.models.comment import Reply, ThreadComment, ThreadSnapshot
from storysync.models.engagement import EngagementRecord
from storysync.models.intent import (
    CreateComment,
    DeleteComment,
    EditComment,
    MutationIntent,
    MutationResult,
    ToggleCommentLike,
    ToggleLike,
    ToggleListMembership,
)
from storysync.models.story import StoryPayload
from storysync.services.content_api import ContentApi
from storysync.services.fallback_markers import FallbackMarkerStore

Credential = Union[str, Callable[[], Optional[str]], None]


class SyncFacade:
    """
    Composes the view ledger, engagement store, coordinator and comment store
    on top of a ContentApi and a FallbackMarkerStore.

    Store instances are injected (or created fresh) so each session, or each
    test, owns its own state.
    """

    def __init__(
        self,
        api: ContentApi,
        markers: FallbackMarkerStore,
        *,
        engagement: Optional[EngagementRecordStore] = None,
        comments: Optional[CommentThreadStore] = None,
        credential: Credential = None,
        user_id: Optional[str] = None,
    ):
        self._api = api
        self._markers = markers
        self._engagement = engagement if engagement is not None else EngagementRecordStore()
        self._comments = comments if comments is not None else CommentThreadStore()
        self._credential_source = credential
        self.user_id = user_id
        self._coordinator = MutationCoordinator(self._engagement, api, self._credential)
        self._comment_handlers = {
            CreateComment: self._create_comment,
            EditComment: self._edit_comment,
            DeleteComment: self._delete_comment,
            ToggleCommentLike: self._toggle_comment_like,
        }

    # Reads

    def get_liked(self, story_id: str) -> bool:
        return self._engagement.get_liked(story_id)

    def get_in_list(self, story_id: str) -> bool:
        return self._engagement.get_in_list(story_id)

    def get_likes_count(self, story_id: str) -> int:
        return self._engagement.get_likes_count(story_id)

    def engagement(self, story_id: str) -> EngagementRecord:
        return self._engagement.record(story_id)

    def thread(self, story_id: str) -> ThreadSnapshot:
        return self._comments.snapshot(story_id)

    def is_mutating(self, story_id: str) -> bool:
        return self._coordinator.is_in_flight(story_id)

    def metrics_text(self) -> str:
        """Prometheus text exposition of the engine counters."""
        return METRICS.export_prometheus()

    # Story detail lifecycle

    def open_story_view(self) -> SessionViewLedger:
        """New ledger for one mounted detail view; drop it on unmount."""
        return SessionViewLedger()

    def paint_from_fallback(self, story_id: str) -> EngagementRecord:
        """Pre-seed from the persisted marker; no-op once the server has answered."""
        marker = self._markers.get_fallback_liked(story_id)
        if marker is None:
            return self._engagement.record(story_id)
        return self._engagement.seed_fallback(story_id, marker)

    async def load_story(self, story_id: str) -> StoryPayload:
        self.paint_from_fallback(story_id)
        story = await self._api.fetch_story(story_id, self._credential())
        self.ingest_stories([story])
        return story

    async def record_view(self, ledger: SessionViewLedger, story_id: str) -> bool:
        """
        Count a view at most once per ledger.

        Returns:
            True if an increment request was dispatched by this call.
        """
        if not ledger.should_count_view(story_id):
            view_increments_total.inc(labels={"outcome": "deduplicated"})
            return False
        try:
            await self._api.increment_view(story_id, self._credential())
        except AppError as exc:
            # Guard stays taken: never retry a view
            view_increments_total.inc(labels={"outcome": "failed"})
            log_event(
                "warning",
                "views.increment_failed",
                story_id=story_id,
                event_type="increment_view",
                error_code=exc.code,
                extra={"detail": exc.message},
            )
            return True
        view_increments_total.inc(labels={"outcome": "sent"})
        return True

    # Server payload ingestion

    def ingest_stories(self, stories: Iterable[StoryPayload]) -> None:
        for story in stories:
            if story.is_liked_by_current_user is None:
                self._engagement.seed_counts_from_server(story.story_id, story.likes_count, views=story.views)
                continue
            self._engagement.seed_from_server(
                story.story_id, story.is_liked_by_current_user, story.likes_count, views=story.views
            )
            self._markers.set_fallback_liked(story.story_id, story.is_liked_by_current_user)

    async def load_my_list(self) -> List[StoryPayload]:
        """Fetch the saved list and confirm membership for every known story."""
        payload = await self._api.fetch_my_list(self._credential())
        listed = {story.story_id for story in payload.stories}
        for story_id in self._engagement.stories_in_list():
            if story_id not in listed:
                self._engagement.seed_list_from_server(story_id, False)
        for story_id in listed:
            self._engagement.seed_list_from_server(story_id, True)
        self.ingest_stories(payload.stories)
        return list(payload.stories)

    # Mutations

    async def perform(self, intent: MutationIntent) -> MutationResult:
        if isinstance(intent, (ToggleLike, ToggleListMembership)):
            result = await self._coordinator.perform(intent)
            if result.ok and isinstance(intent, ToggleLike):
                self._markers.set_fallback_liked(intent.story_id, result.value.liked)
            return result
        handler = self._comment_handlers.get(type(intent))
        if handler is None:
            raise TypeError(f"Unsupported intent: {type(intent).__name__}")
        with bind_request_id() as rid:
            return await handler(intent, rid)

    # Comments

    async def load_comments(self, story_id: str, page: int = 1) -> ThreadSnapshot:
        fetched = await self._api.fetch_comments(story_id, page)
        return self._comments.load(story_id, fetched, page=page)

    async def load_more_comments(self, story_id: str) -> Optional[ThreadSnapshot]:
        """Next page if the server reported one, else None."""
        pagination = self._comments.pagination(story_id)
        if pagination is None:
            return await self.load_comments(story_id, 1)
        if not pagination.has_next:
            return None
        return await self.load_comments(story_id, pagination.current_page + 1)

    async def _create_comment(self, intent: CreateComment, rid: str) -> MutationResult:
        try:
            created = await self._api.create_comment(
                intent.story_id, intent.content, intent.parent_id, self._credential()
            )
        except AppError as exc:
            return self._comment_failed(intent, exc, rid)

        if isinstance(created, Reply):
            try:
                self._comments.insert_reply(created.parent_id, created)
            except NotFoundError:
                self._not_loaded(intent, created.parent_id)
        elif isinstance(created, ThreadComment):
            self._comments.insert_top_level(created)
        comment_mutations_total.inc(labels={"type": intent.kind, "outcome": "committed"})
        return MutationResult.succeeded(intent, created, request_id=rid)

    async def _edit_comment(self, intent: EditComment, rid: str) -> MutationResult:
        try:
            updated = await self._api.update_comment(intent.comment_id, intent.content, self._credential())
        except AppError as exc:
            return self._comment_failed(intent, exc, rid)

        try:
            node = self._comments.update(intent.comment_id, updated.content)
        except NotFoundError:
            self._not_loaded(intent, intent.comment_id)
            node = updated
        comment_mutations_total.inc(labels={"type": intent.kind, "outcome": "committed"})
        return MutationResult.succeeded(intent, node, request_id=rid)

    async def _delete_comment(self, intent: DeleteComment, rid: str) -> MutationResult:
        try:
            await self._api.delete_comment(intent.comment_id, self._credential())
        except AppError as exc:
            return self._comment_failed(intent, exc, rid)

        removed = None
        try:
            removed = self._comments.remove(intent.comment_id)
        except NotFoundError:
            self._not_loaded(intent, intent.comment_id)
        comment_mutations_total.inc(labels={"type": intent.kind, "outcome": "committed"})
        return MutationResult.succeeded(intent, removed, request_id=rid)

    async def _toggle_comment_like(self, intent: ToggleCommentLike, rid: str) -> MutationResult:
        """Local toggle first, then reconcile with the server; local-only rollback on failure."""
        if not self.user_id:
            exc = AppError("Sign in to like comments", code="unauthenticated", status_code=401, request_id=rid)
            return self._comment_failed(intent, exc, rid)

        node = self._comments.find(intent.comment_id)
        prior_liked = node.is_liked_by(self.user_id) if node is not None else None
        if node is not None:
            self._comments.set_like(intent.comment_id, self.user_id, not prior_liked)

        try:
            liked = await self._api.toggle_comment_like(intent.comment_id, self._credential())
        except AppError as exc:
            if prior_liked is not None:
                self._undo_comment_like(intent, prior_liked)
            return self._comment_failed(intent, exc, rid)

        node = None
        try:
            node = self._comments.set_like(intent.comment_id, self.user_id, liked)
        except NotFoundError:
            self._not_loaded(intent, intent.comment_id)
        comment_mutations_total.inc(labels={"type": intent.kind, "outcome": "committed"})
        return MutationResult.succeeded(intent, node if node is not None else liked, request_id=rid)

    def _undo_comment_like(self, intent: ToggleCommentLike, prior_liked: bool) -> None:
        try:
            self._comments.set_like(intent.comment_id, self.user_id, prior_liked)
        except NotFoundError:
            # Removed by a later load or delete; nothing left to revert
            return
        log_event("info", "comments.like_rolled_back", comment_id=intent.comment_id, event_type=intent.kind)

    def _comment_failed(self, intent, exc: AppError, rid: str) -> MutationResult:
        if exc.request_id is None:
            exc.request_id = rid
        comment_mutations_total.inc(labels={"type": intent.kind, "outcome": "failed"})
        log_event(
            "warning",
            "comments.mutation_failed",
            story_id=getattr(intent, "story_id", None),
            comment_id=getattr(intent, "comment_id", None),
            event_type=intent.kind,
            error_code=exc.code,
            extra={"detail": exc.message},
        )
        return MutationResult.failed(intent, exc, request_id=rid)

    def _not_loaded(self, intent, comment_id: str) -> None:
        comment_mutations_total.inc(labels={"type": intent.kind, "outcome": "not_loaded"})
        log_event(
            "debug",
            "comments.not_found_ignored",
            comment_id=comment_id,
            event_type=intent.kind,
            error_code="not_found",
        )

    def _credential(self) -> Optional[str]:
        source = self._credential_source
        if callable(source):
            return source()
        return source
