#!/usr/bin/env python3
"""
Unit tests for the dashboard HTTP client
"""

import pytest
import requests
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from retrieval.client import DashboardClient
from retrieval.errors import MalformedEnvelope, NetworkFailure, RequestTimeout, UpstreamError


def make_response(status_code=200, body=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.text = str(body)
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def client():
    return DashboardClient(base_url="http://dashboard.local/api/", timeout=10)


class TestClientInit:
    def test_strips_trailing_slash(self, client):
        assert client.base_url == "http://dashboard.local/api"

    def test_base_url_from_env(self):
        with patch.dict("os.environ", {"DASHBOARD_API_BASE_URL": "http://env.local/api"}):
            assert DashboardClient().base_url == "http://env.local/api"

    def test_default_base_url(self):
        with patch.dict("os.environ", {}, clear=True):
            client = DashboardClient()
        assert client.base_url == DashboardClient.DEFAULT_BASE_URL
        assert client.timeout == DashboardClient.DEFAULT_TIMEOUT


class TestClientRequests:
    @patch("retrieval.client.requests.request")
    def test_unwraps_envelope(self, mock_request, client):
        mock_request.return_value = make_response(
            body={"success": True, "message": "ok", "data": [{"id": 1}]}
        )

        assert client.get("/buildings") == [{"id": 1}]
        args, kwargs = mock_request.call_args
        assert args == ("GET", "http://dashboard.local/api/buildings")
        assert kwargs["timeout"] == 10

    @patch("retrieval.client.requests.request")
    def test_per_call_timeout_and_params(self, mock_request, client):
        mock_request.return_value = make_response(body={"data": []})

        client.get("/production-trends", params={"start_date": "2024-06-01"}, timeout=12)

        kwargs = mock_request.call_args.kwargs
        assert kwargs["timeout"] == 12
        assert kwargs["params"] == {"start_date": "2024-06-01"}

    @patch("retrieval.client.requests.request")
    def test_timeout(self, mock_request, client):
        mock_request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(RequestTimeout) as excinfo:
            client.get("/cctvs/stream/4", timeout=15)
        assert excinfo.value.timeout == 15

    @patch("retrieval.client.requests.request")
    def test_connection_error(self, mock_request, client):
        mock_request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(NetworkFailure):
            client.get("/stats")
        assert client.get_stats() == {"requests": 1, "errors": 1}

    @patch("retrieval.client.requests.request")
    def test_http_error_status(self, mock_request, client):
        mock_request.return_value = make_response(status_code=503, body="busy", reason="Service Unavailable")

        with pytest.raises(UpstreamError) as excinfo:
            client.get("/stats")
        assert excinfo.value.status_code == 503

    @patch("retrieval.client.requests.request")
    def test_envelope_without_data(self, mock_request, client):
        mock_request.return_value = make_response(body={"success": True, "message": "ok"})

        with pytest.raises(MalformedEnvelope):
            client.get("/stats")

    @patch("retrieval.client.requests.request")
    def test_invalid_json(self, mock_request, client):
        mock_request.return_value = make_response(body=ValueError("Expecting value"))

        with pytest.raises(MalformedEnvelope):
            client.get("/stats")

    @patch("retrieval.client.requests.request")
    def test_unsuccessful_envelope(self, mock_request, client):
        mock_request.return_value = make_response(
            body={"success": False, "message": "aggregate failed", "data": None}
        )

        with pytest.raises(UpstreamError, match="aggregate failed"):
            client.get("/unit-performance")
