"""
Stream URL resolution with escalating per-attempt timeouts.

The stream server needs a while to warm up after a camera is first
requested, so each attempt gets more time than the previous one and a short
pause separates attempts:

    attempt 1: 12s   → wait 750ms
    attempt 2: 15s   → wait 750ms
    attempt 3: 20s   → unresolved

Any failure (timeout or otherwise) on a non-final attempt moves on to the
next attempt. Exhaustion returns an unresolved result instead of raising.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUTS_MS = (12000, 15000, 20000)
DEFAULT_DELAY_MS = 750


@dataclass(frozen=True)
class RetryAttempt:
    attempt_index: int
    timeout_ms: int
    delay_before_ms: int


def plan(
    attempt_index: int,
    timeouts_ms: Sequence[int] = DEFAULT_TIMEOUTS_MS,
    delay_ms: int = DEFAULT_DELAY_MS,
) -> RetryAttempt:
    """Timeout and pre-attempt delay for the zero-based `attempt_index`."""
    if not 0 <= attempt_index < len(timeouts_ms):
        raise IndexError(f"attempt {attempt_index} outside plan of {len(timeouts_ms)}")
    return RetryAttempt(
        attempt_index=attempt_index,
        timeout_ms=timeouts_ms[attempt_index],
        delay_before_ms=0 if attempt_index == 0 else delay_ms,
    )


class ResolutionState(Enum):
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class StreamResolution:
    camera_id: str
    stream_url: str
    state: ResolutionState
    attempts: int
    last_error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.state == ResolutionState.RESOLVED

    def to_dict(self) -> Dict[str, Any]:
        return {"stream_url": self.stream_url}


StreamFetcher = Callable[[str, float], Dict[str, Any]]


class StreamUrlResolver:
    """
    Drives Attempting(i) → Resolved | Attempting(i+1) | Failed.

    `fetch_stream(camera_id, timeout_sec)` performs a single lookup and returns
    the stream payload ({"stream_url": ...}); it may raise anything.
    """

    def __init__(
        self,
        fetch_stream: StreamFetcher,
        timeouts_ms: Sequence[int] = DEFAULT_TIMEOUTS_MS,
        delay_ms: int = DEFAULT_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not timeouts_ms:
            raise ValueError("At least one attempt timeout is required")
        if list(timeouts_ms) != sorted(timeouts_ms):
            raise ValueError(f"Attempt timeouts must be non-decreasing: {list(timeouts_ms)}")

        self.fetch_stream = fetch_stream
        self.timeouts_ms = tuple(timeouts_ms)
        self.delay_ms = delay_ms
        self._sleep = sleep

    def attempts(self) -> list[RetryAttempt]:
        return [plan(i, self.timeouts_ms, self.delay_ms) for i in range(len(self.timeouts_ms))]

    def resolve(self, camera_id: str) -> StreamResolution:
        last_error = None

        for attempt in self.attempts():
            if attempt.delay_before_ms:
                self._sleep(attempt.delay_before_ms / 1000)

            try:
                payload = self.fetch_stream(camera_id, attempt.timeout_ms / 1000)
                url = (payload or {}).get("stream_url") or ""
                if not url:
                    raise ValueError("response carried no stream_url")
            except Exception as e:
                last_error = str(e)
                logger.warning(
                    f"Stream attempt {attempt.attempt_index + 1}/{len(self.timeouts_ms)} "
                    f"for camera {camera_id} failed ({attempt.timeout_ms}ms): {e}"
                )
                continue

            if attempt.attempt_index > 0:
                logger.info(f"Stream for camera {camera_id} resolved on attempt {attempt.attempt_index + 1}")
            return StreamResolution(
                camera_id=camera_id,
                stream_url=url,
                state=ResolutionState.RESOLVED,
                attempts=attempt.attempt_index + 1,
            )

        logger.error(f"Error fetching stream URL for camera {camera_id}: {last_error}")
        return unresolved(camera_id, attempts=len(self.timeouts_ms), last_error=last_error)


def unresolved(camera_id: str, attempts: int = 0, last_error: str = None) -> StreamResolution:
    return StreamResolution(
        camera_id=camera_id,
        stream_url="",
        state=ResolutionState.FAILED,
        attempts=attempts,
        last_error=last_error,
    )
