#!/usr/bin/env python3
"""
Unit tests for dashboard snapshot loading and polling
"""

import pytest
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from retrieval.api import DEFAULT_STATS, DashboardApi
from retrieval.cache import RetrievalCache
from retrieval.client import DashboardClient
from retrieval.config import RetrievalConfig
from retrieval.dashboard import DashboardLoader, DashboardSnapshot, build_dashboard_loader, infer_date_range
from retrieval.persistence import PersistentStore


@pytest.fixture
def api():
    api = MagicMock()
    api.get_stats.return_value = {"total_buildings": 2, "total_rooms": 5, "total_cctvs": 9}
    api.get_unit_performance.return_value = [{"unit": "HQ - Lobby", "efficiency": 80}]

    def trends(start_date=None, end_date=None):
        if start_date is None:
            return [{"date": "2024-05-30"}, {"date": "2024-06-12"}]
        return [{"date": start_date}]

    api.get_production_trends.side_effect = trends
    return api


class TestInferDateRange:
    def test_month_of_latest_row(self):
        rows = [{"date": "2024-01-15"}, {"date": "2024-02-03T00:00:00.000000Z"}]
        assert infer_date_range(rows) == ("2024-02-01", "2024-02-29")

    def test_no_usable_dates(self):
        assert infer_date_range([]) is None
        assert infer_date_range([{"date": "garbage"}, {}]) is None


class TestDashboardLoader:
    def test_first_load_initialises_range(self, api):
        loader = DashboardLoader(api)
        snapshot = loader.load()

        assert snapshot.date_range == ("2024-06-01", "2024-06-30")
        assert snapshot.production_trends == [{"date": "2024-06-01"}]
        assert snapshot.stats == {"total_buildings": 2, "total_rooms": 5, "total_cctvs": 9}
        assert snapshot.unit_performance[0]["unit"] == "HQ - Lobby"

    def test_later_loads_reuse_range(self, api):
        loader = DashboardLoader(api)
        loader.load()
        api.get_production_trends.reset_mock()

        loader.load()
        api.get_production_trends.assert_called_once_with("2024-06-01", "2024-06-30")

    def test_explicit_range(self, api):
        snapshot = DashboardLoader(api, date_range=("2024-03-01", "2024-03-31")).load()
        assert snapshot.production_trends == [{"date": "2024-03-01"}]

    def test_no_trend_data_leaves_range_unset(self, api):
        api.get_production_trends.side_effect = None
        api.get_production_trends.return_value = []

        snapshot = DashboardLoader(api).load()
        assert snapshot.date_range is None
        assert snapshot.production_trends == []

    def test_missing_stats_fall_back_to_listings(self, api):
        api.get_stats.return_value = {"total_buildings": 2}
        api.get_rooms.return_value = [{}, {}, {}]
        api.get_cctvs.return_value = [{}]

        stats = DashboardLoader(api).load().stats
        assert stats == {"total_buildings": 2, "total_rooms": 3, "total_cctvs": 1}
        api.get_buildings.assert_not_called()

    def test_unexpected_failure_gives_default_snapshot(self, api):
        api.get_stats.side_effect = RuntimeError("boom")

        snapshot = DashboardLoader(api, date_range=("2024-03-01", "2024-03-31")).load()

        assert snapshot == DashboardSnapshot(stats=DEFAULT_STATS, date_range=("2024-03-01", "2024-03-31"))


class TestNullPayloads:
    def test_null_data_envelopes_load_as_defaults(self, tmp_path, clock, monkeypatch):
        def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
            response = MagicMock()
            response.status_code = 200
            response.json.return_value = {"success": True, "message": "ok", "data": None}
            return response

        monkeypatch.setattr("retrieval.client.requests.request", fake_request)

        cache = RetrievalCache(PersistentStore(str(tmp_path / "cache.db")), clock=clock)
        api = DashboardApi(DashboardClient(base_url="http://dashboard.local/api"), cache)
        try:
            snapshot = DashboardLoader(api).load()

            assert snapshot.stats == DEFAULT_STATS
            assert snapshot.production_trends == []
            assert snapshot.unit_performance == []
            assert snapshot.date_range is None
            assert api.get_buildings() == []
        finally:
            api.close()

    def test_non_dict_rows_ignored_when_inferring_range(self):
        assert infer_date_range(None) is None
        assert infer_date_range(["2024-06-01", None, {"date": "2024-06-03"}]) == ("2024-06-01", "2024-06-30")


class TestPolling:
    def test_poll_until_stopped(self, api):
        stop = threading.Event()
        snapshots = []

        def on_snapshot(snapshot):
            snapshots.append(snapshot)
            if len(snapshots) == 3:
                stop.set()

        loads = DashboardLoader(api).poll(on_snapshot, stop, interval_sec=0.01)

        assert loads == 3
        assert len(snapshots) == 3

    def test_poll_with_stop_already_set(self, api):
        stop = threading.Event()
        stop.set()
        assert DashboardLoader(api).poll(lambda s: None, stop) == 0

    def test_loader_interval_used_by_default(self, api):
        stop = threading.Event()
        loader = DashboardLoader(api, interval_sec=0.01)

        def on_snapshot(snapshot):
            if api.get_stats.call_count == 2:
                stop.set()

        assert loader.poll(on_snapshot, stop) == 2


def test_build_dashboard_loader_from_config(tmp_path):
    config = RetrievalConfig.from_dict({
        "retrieval": {"db_path": str(tmp_path / "cache.db"), "poll_interval_sec": 5}
    })
    loader = build_dashboard_loader(config)
    try:
        assert loader.interval_sec == 5
        assert loader.date_range is None
    finally:
        loader.api.close()
