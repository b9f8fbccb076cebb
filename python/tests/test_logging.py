"""Tests for logging context propagation."""

import asyncio

import pytest

from coursevault.logging import (
    add_request_context,
    bind_analysis_context,
    clear_analysis_context,
    clear_request_context,
    get_request_id,
    set_request_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_request_context()
    clear_analysis_context()
    yield
    clear_request_context()
    clear_analysis_context()


class TestRequestContext:
    def test_context_injected_into_events(self):
        set_request_context("req-1", user_id="user-1", path="/courses", method="GET")

        event = add_request_context(None, "info", {"event": "x"})

        assert event == {
            "event": "x",
            "request_id": "req-1",
            "user_id": "user-1",
            "path": "/courses",
            "method": "GET",
        }

    def test_explicit_fields_win(self):
        set_request_context("req-1")
        event = add_request_context(None, "info", {"event": "x", "request_id": "other"})
        assert event["request_id"] == "other"

    def test_cleared_context_adds_nothing(self):
        set_request_context("req-1", path="/health")
        clear_request_context()

        assert add_request_context(None, "info", {"event": "x"}) == {"event": "x"}
        assert get_request_id() is None


class TestAnalysisContext:
    @pytest.mark.asyncio
    async def test_pipeline_context_stays_in_its_task(self):
        """Values bound inside a task do not leak into the caller."""
        seen = {}

        async def pipeline():
            bind_analysis_context("job-1", 3, request_id="req-9")
            seen.update(add_request_context(None, "info", {}))

        await asyncio.create_task(pipeline())

        assert seen == {"analysis_id": "job-1", "attempt": 3, "request_id": "req-9"}
        assert add_request_context(None, "info", {}) == {}
