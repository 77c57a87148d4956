"""Tests for structured logging and request_id propagation."""

import json
import logging

import pytest

from storysync.core.errors import NetworkFailure
from storysync.core.logging import (
    JsonFormatter,
    KeyValueFormatter,
    SyncContextFilter,
    bind_request_id,
    get_request_id,
    log_event,
)
from storysync.models.intent import ToggleLike


def test_bind_request_id_scopes_value():
    assert get_request_id() is None
    with bind_request_id("abc") as rid:
        assert rid == "abc"
        assert get_request_id() == "abc"
    assert get_request_id() is None


def test_json_formatter_includes_story_fields(caplog):
    with caplog.at_level(logging.INFO, logger="storysync"):
        with bind_request_id("rid-7"):
            log_event("info", "engagement.committed", story_id="S1", event_type="toggle_like")
    record = next(r for r in caplog.records if r.getMessage() == "engagement.committed")
    payload = json.loads(JsonFormatter().format(record))
    assert payload["request_id"] == "rid-7"
    assert payload["story_id"] == "S1"
    assert payload["event_type"] == "toggle_like"


@pytest.mark.asyncio
async def test_rollback_log_carries_mutation_request_id(facade, api, caplog):
    api.script("toggle_like", NetworkFailure("offline"))
    with caplog.at_level(logging.INFO, logger="storysync"):
        result = await facade.perform(ToggleLike(story_id="S1"))
    records = [r for r in caplog.records if r.getMessage() == "engagement.rolled_back"]
    assert records
    assert records[0].request_id == result.request_id
    assert records[0].error_code == "network_failure"


def test_key_value_formatter_renders_present_fields_only():
    record = logging.LogRecord("storysync", logging.WARNING, __file__, 1, "comments.mutation_failed", None, None)
    record.comment_id = "c9"
    record.error_code = "rejected"
    SyncContextFilter().filter(record)

    line = KeyValueFormatter().format(record)
    assert "comments.mutation_failed" in line
    assert "comment_id=c9" in line
    assert "error_code=rejected" in line
    assert "story_id" not in line
    assert "request_id" not in line


def test_long_extra_values_are_clipped(caplog):
    with caplog.at_level(logging.INFO, logger="storysync"):
        log_event("info", "comments.mutation_failed", extra={"detail": "x" * 1000})
    record = next(r for r in caplog.records if r.getMessage() == "comments.mutation_failed")
    assert record.detail == "x" * 300 + "..."
