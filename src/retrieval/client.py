#!/usr/bin/env python3
"""
Dashboard API Client — HTTP transport for dashboard reads

Implements:
- get(endpoint, params, timeout) -> payload
- request(method, endpoint, ...) -> payload

Responses are {success, message, data} envelopes; only `data` is returned.
Failures raise RequestTimeout / NetworkFailure / UpstreamError; the caching
and API layers above decide whether to absorb them.
"""

import logging
import os
from typing import Any, Dict, Optional

import requests

from .envelope import unwrap
from .errors import MalformedEnvelope, NetworkFailure, RequestTimeout, UpstreamError

logger = logging.getLogger(__name__)


class DashboardClient:
    """
    Thin requests-based client for the dashboard API.

    Design principles:
    - Base URL from argument or DASHBOARD_API_BASE_URL
    - Every request has a timeout; per-call timeouts override the default
    - Errors are typed and raised, never turned into empty payloads here
    """

    DEFAULT_BASE_URL = "http://127.0.0.1:8000/api"
    DEFAULT_TIMEOUT = 10  # seconds

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = (
            base_url or os.environ.get("DASHBOARD_API_BASE_URL") or self.DEFAULT_BASE_URL
        ).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT

        self._request_count = 0
        self._error_count = 0

        logger.info(f"DashboardClient initialized (base_url={self.base_url}, timeout={self.timeout}s)")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        timeout: float = None,
    ) -> Any:
        """Perform a request and return the unwrapped envelope payload."""
        url = f"{self.base_url}{endpoint}"
        timeout = timeout or self.timeout
        self._request_count += 1

        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=json,
                timeout=timeout,
            )
        except requests.Timeout as e:
            self._error_count += 1
            logger.error(f"API timeout: {method} {endpoint} (>{timeout}s)")
            raise RequestTimeout(endpoint, timeout) from e
        except requests.RequestException as e:
            self._error_count += 1
            logger.error(f"API connection error: {method} {endpoint}: {e}")
            raise NetworkFailure(f"{method} {endpoint}: {e}") from e

        if response.status_code >= 400:
            self._error_count += 1
            logger.warning(
                f"API error: {method} {endpoint} -> {response.status_code} {response.text[:200]}"
            )
            raise UpstreamError(endpoint, response.status_code, response.reason or "")

        try:
            body = response.json()
        except ValueError as e:
            self._error_count += 1
            raise MalformedEnvelope(endpoint, f"invalid JSON ({e})") from e

        try:
            return unwrap(endpoint, body)
        except UpstreamError:
            self._error_count += 1
            raise

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, timeout: float = None) -> Any:
        return self.request("GET", endpoint, params=params, timeout=timeout)

    def get_stats(self) -> Dict[str, int]:
        return {"requests": self._request_count, "errors": self._error_count}
