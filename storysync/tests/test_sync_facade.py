"""
storysync/tests/test_sync_facade.py
End-to-end flows through the facade: first paint, server seeding, list,
mutations routed by intent, and comment handling.
"""

import asyncio

import pytest

from storysync.core.errors import NetworkFailure, RejectedByServer
from storysync.core.metrics import comment_mutations_total
from storysync.models.comment import CommentPage, Pagination
from storysync.models.engagement import Provenance
from storysync.models.intent import (
    CreateComment,
    DeleteComment,
    EditComment,
    ToggleCommentLike,
    ToggleLike,
    ToggleListMembership,
)
from storysync.models.story import MyListPayload, StoryPayload
from storysync.tests.mocks import Pending, make_comment, make_reply


class TestStoryLoading:
    @pytest.mark.asyncio
    async def test_fallback_paints_then_server_wins(self, facade, api, markers):
        markers.set_fallback_liked("S1", True)
        pending = Pending(StoryPayload(story_id="S1", is_liked_by_current_user=False, likes_count=10, views=3))
        api.script("fetch_story", pending)

        task = asyncio.create_task(facade.load_story("S1"))
        await pending.started.wait()
        assert facade.get_liked("S1") is True
        assert facade.engagement("S1").like_provenance is Provenance.LOCAL_FALLBACK

        pending.release()
        await task

        assert facade.get_liked("S1") is False
        assert facade.get_likes_count("S1") == 10
        assert facade.engagement("S1").views == 3
        # marker follows the server once confirmed
        assert markers.get_fallback_liked("S1") is False

    @pytest.mark.asyncio
    async def test_stale_marker_ignored_after_confirmation(self, facade, api, markers):
        api.stories["S1"] = StoryPayload(story_id="S1", is_liked_by_current_user=True, likes_count=1)
        await facade.load_story("S1")
        markers.set_fallback_liked("S1", False)

        facade.paint_from_fallback("S1")

        assert facade.get_liked("S1") is True

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, facade, api):
        api.script("fetch_story", RejectedByServer("Story not found", status_code=404))
        with pytest.raises(RejectedByServer):
            await facade.load_story("missing")

    def test_ingest_without_user_flag_keeps_like_state(self, facade, markers):
        markers.set_fallback_liked("S1", True)
        facade.paint_from_fallback("S1")
        facade.ingest_stories([StoryPayload(story_id="S1", likes_count=8)])

        rec = facade.engagement("S1")
        assert rec.liked is True
        assert rec.like_provenance is Provenance.LOCAL_FALLBACK
        assert rec.likes_count == 8


class TestMyList:
    @pytest.mark.asyncio
    async def test_list_fetch_confirms_membership(self, facade, api):
        await facade.perform(ToggleListMembership(story_id="gone"))
        api.script("fetch_my_list", MyListPayload(stories=[StoryPayload(story_id="S1"), StoryPayload(story_id="S2")]))

        stories = await facade.load_my_list()

        assert [s.story_id for s in stories] == ["S1", "S2"]
        assert facade.get_in_list("S1") and facade.get_in_list("S2")
        assert facade.get_in_list("gone") is False
        assert facade.engagement("gone").list_provenance is Provenance.SERVER_CONFIRMED


class TestEngagementMutations:
    @pytest.mark.asyncio
    async def test_like_commit_writes_marker(self, facade, api, markers):
        result = await facade.perform(ToggleLike(story_id="S1"))
        assert result.ok is True
        assert markers.get_fallback_liked("S1") is True
        assert api.calls_to("toggle_like") == [("toggle_like", "S1", "token-me")]

    @pytest.mark.asyncio
    async def test_metrics_text_reports_outcomes(self, facade, api):
        api.script("toggle_list", NetworkFailure("offline"))
        await facade.perform(ToggleLike(story_id="S1"))
        await facade.perform(ToggleListMembership(story_id="S1"))

        text = facade.metrics_text()
        assert "# TYPE engagement_mutations_total counter" in text
        assert 'engagement_mutations_total{type="toggle_like",outcome="committed"} 1.0' in text
        assert 'engagement_mutations_total{type="toggle_list",outcome="rolled_back"} 1.0' in text
        assert "engagement_inflight_gates 0.0" in text

    @pytest.mark.asyncio
    async def test_like_failure_leaves_marker_alone(self, facade, api, markers):
        api.script("toggle_like", NetworkFailure("offline"))
        result = await facade.perform(ToggleLike(story_id="S1"))
        assert result.ok is False
        assert markers.get_fallback_liked("S1") is None

    @pytest.mark.asyncio
    async def test_callable_credential(self, api, markers):
        from storysync.features.sync.facade import SyncFacade

        tokens = iter(["t1", "t2"])
        facade = SyncFacade(api, markers, credential=lambda: next(tokens))
        await facade.perform(ToggleLike(story_id="S1"))
        await facade.perform(ToggleLike(story_id="S1"))
        assert [c[2] for c in api.calls_to("toggle_like")] == ["t1", "t2"]


class TestComments:
    @pytest.fixture
    def seeded(self, api):
        api.comment_pages[("S1", 1)] = CommentPage(
            comments=[make_comment("B", minute=2), make_comment("A", minute=1)],
            pagination=Pagination(current_page=1, total_pages=2, total_comments=3, has_next=True),
        )
        api.comment_pages[("S1", 2)] = CommentPage(
            comments=[make_comment("old")],
            pagination=Pagination(current_page=2, total_pages=2, total_comments=3, has_prev=True),
        )
        return api

    @pytest.mark.asyncio
    async def test_load_then_more(self, facade, seeded):
        await facade.load_comments("S1")
        snapshot = await facade.load_more_comments("S1")
        assert [c.comment_id for c in snapshot.comments] == ["B", "A", "old"]
        assert await facade.load_more_comments("S1") is None

    @pytest.mark.asyncio
    async def test_second_page_without_pagination_block_appends(self, facade, seeded):
        seeded.comment_pages[("S1", 2)] = CommentPage(comments=[make_comment("old")])
        await facade.load_comments("S1")
        snapshot = await facade.load_comments("S1", page=2)
        assert [c.comment_id for c in snapshot.comments] == ["B", "A", "old"]

    @pytest.mark.asyncio
    async def test_load_more_without_prior_load_starts_at_first_page(self, facade, seeded):
        snapshot = await facade.load_more_comments("S1")
        assert snapshot.pagination.current_page == 1

    @pytest.mark.asyncio
    async def test_create_top_level_and_reply(self, facade, seeded):
        await facade.load_comments("S1")

        top = await facade.perform(CreateComment(story_id="S1", content="new"))
        reply = await facade.perform(CreateComment(story_id="S1", content="answer", parent_id="A"))

        thread = facade.thread("S1")
        assert thread.comments[0].comment_id == top.value.comment_id
        assert thread.find("A").replies[-1].comment_id == reply.value.comment_id

    @pytest.mark.asyncio
    async def test_reply_to_unloaded_parent_is_silent(self, facade, seeded):
        await facade.load_comments("S1")
        before = facade.thread("S1")

        result = await facade.perform(CreateComment(story_id="S1", content="x", parent_id="elsewhere"))

        assert result.ok is True
        assert facade.thread("S1") == before
        assert comment_mutations_total.value({"type": "create_comment", "outcome": "not_loaded"}) == 1

    @pytest.mark.asyncio
    async def test_create_failure_changes_nothing(self, facade, api, seeded):
        await facade.load_comments("S1")
        before = facade.thread("S1")
        api.script("create_comment", RejectedByServer("Parent comment not found", status_code=404))

        result = await facade.perform(CreateComment(story_id="S1", content="x", parent_id="A"))

        assert result.ok is False
        assert result.error.message == "Parent comment not found"
        assert facade.thread("S1") == before

    @pytest.mark.asyncio
    async def test_edit_and_delete(self, facade, seeded):
        await facade.load_comments("S1")

        edited = await facade.perform(EditComment(comment_id="A", content="fixed"))
        assert edited.value.content == "fixed"
        assert facade.thread("S1").find("A").edited is True

        deleted = await facade.perform(DeleteComment(comment_id="B"))
        assert deleted.value.comment_id == "B"
        assert [c.comment_id for c in facade.thread("S1").comments] == ["A"]

    @pytest.mark.asyncio
    async def test_edit_and_delete_unloaded_are_noops(self, facade, seeded):
        await facade.load_comments("S1")
        before = facade.thread("S1")

        assert (await facade.perform(EditComment(comment_id="ghost", content="x"))).ok is True
        assert (await facade.perform(DeleteComment(comment_id="ghost"))).ok is True
        assert facade.thread("S1") == before

    @pytest.mark.asyncio
    async def test_comment_like_reconciles_with_server(self, facade, api, comment_store):
        comment_store.insert_top_level(make_comment("A"))
        api.script("toggle_comment_like", False)

        result = await facade.perform(ToggleCommentLike(comment_id="A"))

        assert result.ok is True
        assert comment_store.find("A").is_liked_by("me") is False

    @pytest.mark.asyncio
    async def test_comment_like_rolls_back_locally(self, facade, api, comment_store):
        comment_store.insert_top_level(make_comment("A", likes=("u9",)))
        comment_store.insert_reply("A", make_reply("r1", "A"))
        pending = Pending(NetworkFailure("offline"))
        api.script("toggle_comment_like", pending)

        task = asyncio.create_task(facade.perform(ToggleCommentLike(comment_id="r1")))
        await pending.started.wait()
        assert comment_store.find("r1").is_liked_by("me") is True
        pending.release()
        result = await task

        assert result.ok is False
        assert comment_store.find("r1").likes == frozenset()
        assert comment_store.find("A").likes == frozenset({"u9"})

    @pytest.mark.asyncio
    async def test_comment_like_requires_user(self, api, markers):
        from storysync.features.sync.facade import SyncFacade

        anonymous = SyncFacade(api, markers)
        result = await anonymous.perform(ToggleCommentLike(comment_id="A"))

        assert result.ok is False
        assert result.error.code == "unauthenticated"
        assert api.calls_to("toggle_comment_like") == []

    @pytest.mark.asyncio
    async def test_unknown_intent(self, facade):
        with pytest.raises(TypeError):
            await facade.perform(object())
