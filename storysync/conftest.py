# storysync/conftest.py
import pytest

from storysync.core.metrics import METRICS
from storysync.features.comments.store import CommentThreadStore
from storysync.features.engagement.store import EngagementRecordStore
from storysync.features.sync.facade import SyncFacade
from storysync.services.fallback_markers import InMemoryFallbackMarkers
from storysync.tests.mocks import FakeContentApi


@pytest.fixture(autouse=True)
def reset_metrics():
    """Counters are process-wide; start every test from zero."""
    METRICS.reset()
    yield
    METRICS.reset()


@pytest.fixture
def api():
    return FakeContentApi()


@pytest.fixture
def markers():
    return InMemoryFallbackMarkers()


@pytest.fixture
def engagement_store():
    return EngagementRecordStore()


@pytest.fixture
def comment_store():
    return CommentThreadStore()


@pytest.fixture
def facade(api, markers, engagement_store, comment_store):
    """Fresh stores per test; signed in as user 'me'."""
    return SyncFacade(
        api,
        markers,
        engagement=engagement_store,
        comments=comment_store,
        credential="token-me",
        user_id="me",
    )
