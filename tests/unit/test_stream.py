#!/usr/bin/env python3
"""
Unit tests for stream URL resolution with escalating timeouts
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from retrieval.errors import NetworkFailure, RequestTimeout
from retrieval.stream import ResolutionState, StreamUrlResolver, plan


class ScriptedFetcher:
    """Fails the first `failures` attempts, then returns a stream URL."""

    def __init__(self, failures, errors=None):
        self.failures = failures
        self.errors = errors or []
        self.timeouts = []

    def __call__(self, camera_id, timeout):
        self.timeouts.append(timeout)
        attempt = len(self.timeouts)
        if attempt <= self.failures:
            if self.errors:
                raise self.errors[attempt - 1]
            raise RequestTimeout(f"/cctvs/stream/{camera_id}", timeout)
        return {"stream_url": f"http://streams.local/{camera_id}/index.m3u8"}


class TestPlan:
    def test_default_schedule(self):
        attempts = [plan(i) for i in range(3)]

        assert [a.timeout_ms for a in attempts] == [12000, 15000, 20000]
        assert [a.delay_before_ms for a in attempts] == [0, 750, 750]
        assert [a.attempt_index for a in attempts] == [0, 1, 2]

    def test_outside_plan(self):
        with pytest.raises(IndexError):
            plan(3)

    def test_custom_schedule(self):
        assert plan(1, timeouts_ms=(100, 200), delay_ms=5).delay_before_ms == 5


class TestStreamUrlResolver:
    def test_first_attempt_success_does_not_sleep(self):
        sleeps = []
        fetcher = ScriptedFetcher(failures=0)
        result = StreamUrlResolver(fetcher, sleep=sleeps.append).resolve("7")

        assert result.resolved
        assert result.attempts == 1
        assert sleeps == []

    def test_succeeds_on_third_attempt(self):
        """Test: two failures then success → exactly three attempts, escalating timeouts."""
        sleeps = []
        fetcher = ScriptedFetcher(failures=2)
        result = StreamUrlResolver(fetcher, sleep=sleeps.append).resolve("7")

        assert result.state == ResolutionState.RESOLVED
        assert result.stream_url == "http://streams.local/7/index.m3u8"
        assert result.attempts == 3
        assert fetcher.timeouts == [12.0, 15.0, 20.0]
        assert fetcher.timeouts == sorted(fetcher.timeouts)
        assert sleeps == [0.75, 0.75]

    def test_any_failure_kind_retries(self):
        fetcher = ScriptedFetcher(failures=2, errors=[NetworkFailure("reset"), KeyError("stream_url")])
        result = StreamUrlResolver(fetcher, sleep=lambda _: None).resolve("7")

        assert result.resolved
        assert len(fetcher.timeouts) == 3

    def test_exhaustion_returns_sentinel(self):
        """Test: every attempt fails → unresolved result, never an exception."""
        fetcher = ScriptedFetcher(failures=3)
        result = StreamUrlResolver(fetcher, sleep=lambda _: None).resolve("7")

        assert result.state == ResolutionState.FAILED
        assert not result.resolved
        assert result.stream_url == ""
        assert result.to_dict() == {"stream_url": ""}
        assert result.attempts == 3
        assert "timed out" in result.last_error

    def test_empty_stream_url_counts_as_failure(self):
        responses = [{"stream_url": ""}, {}, {"stream_url": "rtsp://cam/7"}]
        fetcher = lambda camera_id, timeout: responses.pop(0)
        result = StreamUrlResolver(fetcher, sleep=lambda _: None).resolve("7")

        assert result.stream_url == "rtsp://cam/7"
        assert result.attempts == 3

    def test_rejects_decreasing_schedule(self):
        with pytest.raises(ValueError):
            StreamUrlResolver(ScriptedFetcher(0), timeouts_ms=(20000, 12000))

    def test_rejects_empty_schedule(self):
        with pytest.raises(ValueError):
            StreamUrlResolver(ScriptedFetcher(0), timeouts_ms=())
