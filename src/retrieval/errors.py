"""Failure taxonomy for dashboard reads."""

from typing import Optional


class RetrievalError(Exception):
    """Base class for failures reading from the dashboard API."""


class RequestTimeout(RetrievalError):
    def __init__(self, endpoint: str, timeout: float):
        super().__init__(f"Request to {endpoint} timed out after {timeout}s")
        self.endpoint = endpoint
        self.timeout = timeout


class NetworkFailure(RetrievalError):
    """Connection refused, DNS failure, reset, ..."""


class UpstreamError(RetrievalError):
    """The API answered, but not with a successful envelope."""

    def __init__(self, endpoint: str, status_code: Optional[int], detail: str = ""):
        message = f"API request failed: {endpoint} -> {status_code}"
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class MalformedEnvelope(UpstreamError):
    def __init__(self, endpoint: str, detail: str):
        super().__init__(endpoint, None, f"malformed envelope: {detail}")


class CacheStorageUnavailable(RetrievalError):
    """Persistent cache could not be read or written. Never surfaced to API callers."""
