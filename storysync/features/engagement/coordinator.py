"""
storysync/features/engagement/coordinator.py
Generic optimistic mutation pipeline: snapshot -> apply -> request -> commit | rollback.

Calls for the same story are serialized through a per-story gate (asyncio.Lock,
FIFO), so a call's snapshot is only taken after the previous call for that
story has committed or rolled back. Different stories never wait on each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, Optional, Type

from storysync.core.errors import AppError, ConflictIgnored
from storysync.core.logging import bind_request_id, log_event
from storysync.core.metrics import (
    engagement_conflicts_total,
    engagement_inflight_gates,
    engagement_mutations_total,
)
from storysync.features.engagement.store import EngagementRecordStore, ServerValue
from storysync.models.engagement import EngagementRecord
from storysync.models.intent import (
    EngagementIntent,
    MutationResult,
    ToggleLike,
    ToggleListMembership,
)
from storysync.services.content_api import ContentApi

Sender = Callable[[EngagementIntent], Awaitable[ServerValue]]
CredentialProvider = Callable[[], Optional[str]]


class MutationCoordinator:
    """
    Shared apply/commit/rollback protocol for engagement toggles.

    Each intent type maps to a sender coroutine that performs the request and
    returns the server's authoritative value; register() swaps the sender for an
    intent type while keeping the same capture/apply/commit/rollback sequence.
    """

    def __init__(
        self,
        store: EngagementRecordStore,
        api: ContentApi,
        credential: Optional[CredentialProvider] = None,
    ):
        self._store = store
        self._api = api
        self._credential: CredentialProvider = credential or (lambda: None)
        self._senders: Dict[Type, Sender] = {
            ToggleLike: self._send_toggle_like,
            ToggleListMembership: self._send_toggle_list,
        }
        self._gates: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}

    def register(self, intent_type: Type, sender: Sender) -> None:
        self._senders[intent_type] = sender

    def is_in_flight(self, story_id: str) -> bool:
        return story_id in self._gates

    async def perform(self, intent: EngagementIntent) -> MutationResult:
        """
        Apply `intent` optimistically and reconcile with the server.

        Returns:
            MutationResult with the committed record on success, or the
            restored record and the error on failure. Failures are never retried.
        """
        sender = self._senders.get(type(intent))
        if sender is None:
            raise TypeError(f"No sender registered for {type(intent).__name__}")

        story_id = intent.story_id
        async with self._gate(story_id):
            with bind_request_id() as rid:
                prior = self._store.snapshot(story_id)
                target = not self._store.current_value(intent)
                optimistic = self._store.apply_optimistic(intent, target)
                log_event(
                    "debug",
                    "engagement.optimistic_applied",
                    story_id=story_id,
                    event_type=intent.kind,
                    extra={"target": target},
                )

                try:
                    server_value = await sender(intent)
                except AppError as exc:
                    if exc.request_id is None:
                        exc.request_id = rid
                    restored = self._store.rollback(intent, prior)
                    engagement_mutations_total.inc(labels={"type": intent.kind, "outcome": "rolled_back"})
                    log_event(
                        "warning",
                        "engagement.rolled_back",
                        story_id=story_id,
                        event_type=intent.kind,
                        error_code=exc.code,
                        extra={"detail": exc.message, "status": exc.status_code},
                    )
                    return MutationResult.failed(intent, exc, restored, request_id=rid)
                except (Exception, asyncio.CancelledError):
                    self._store.rollback(intent, prior)
                    engagement_mutations_total.inc(labels={"type": intent.kind, "outcome": "rolled_back"})
                    raise

                committed = self._store.commit(intent, server_value)
                conflict = _differs(intent, optimistic, committed)
                engagement_mutations_total.inc(labels={"type": intent.kind, "outcome": "committed"})
                if conflict:
                    engagement_conflicts_total.inc(labels={"type": intent.kind})
                    log_event(
                        "info",
                        "engagement.conflict_ignored",
                        story_id=story_id,
                        event_type=intent.kind,
                        error_code=ConflictIgnored.code,
                        extra={"optimistic": optimistic.model_dump(), "server": committed.model_dump()},
                    )
                else:
                    log_event("debug", "engagement.committed", story_id=story_id, event_type=intent.kind)
                return MutationResult.succeeded(intent, committed, conflict=conflict, request_id=rid)

    @asynccontextmanager
    async def _gate(self, story_id: str):
        lock = self._gates.get(story_id)
        if lock is None:
            lock = self._gates[story_id] = asyncio.Lock()
        self._waiting[story_id] = self._waiting.get(story_id, 0) + 1
        engagement_inflight_gates.set(len(self._gates))
        try:
            async with lock:
                yield
        finally:
            self._waiting[story_id] -= 1
            if self._waiting[story_id] == 0:
                del self._waiting[story_id]
                del self._gates[story_id]
            engagement_inflight_gates.set(len(self._gates))

    async def _send_toggle_like(self, intent: ToggleLike):
        return await self._api.toggle_like(intent.story_id, self._credential())

    async def _send_toggle_list(self, intent: ToggleListMembership):
        return await self._api.toggle_list_membership(intent.story_id, self._credential())


def _differs(intent: EngagementIntent, optimistic: EngagementRecord, committed: EngagementRecord) -> bool:
    if isinstance(intent, ToggleLike):
        return (optimistic.liked, optimistic.likes_count) != (committed.liked, committed.likes_count)
    return optimistic.in_list != committed.in_list
