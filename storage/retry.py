"""
Backoff state machine for GitHub's "statistics not computed yet" responses, plus rate-limit header helpers.

The stats endpoints answer 202 (or an empty object) while GitHub computes the data in the background.
StatsRetryMachine models the polling loop as explicit states so the attempt cap, the delays and
cancellation can be exercised without a network or a real clock.
"""

import os
import time
import logging
import threading
from enum import Enum
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Callable, Tuple

logger = logging.getLogger(__name__)

# retry/backoff defaults from environment
# - HISTORY_MAX_RETRIES: int, total number of stats requests per repository
# - HISTORY_RETRY_DELAY: float (seconds), multiplied by the attempt number
DEFAULT_MAX_RETRIES = int(os.getenv("HISTORY_MAX_RETRIES", "8"))
DEFAULT_RETRY_DELAY = float(os.getenv("HISTORY_RETRY_DELAY", "3.0"))


class RetryState(Enum):
    REQUESTING = "requesting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class RetryExhausted(Exception):
    def __init__(self, attempts: int):
        super().__init__(f"gave up after {attempts} attempts")
        self.attempts = attempts


class RetryCancelled(Exception):
    pass


class StatsRetryMachine:
    """Tracks one polling sequence: REQUESTING -> BACKOFF(attempt) -> REQUESTING ... -> SUCCEEDED | EXHAUSTED.

    :param max_attempts: total number of requests allowed (at least 1).
    :param base_delay: seconds; the wait after attempt n is base_delay * n.
    :param sleep: optional sleeper used instead of real waiting (tests inject a recorder here).
    :param cancel_event: optional threading.Event; once set, backoff ends early and the sequence is abandoned.
    :param on_retry: optional progress callback, called with the attempt number before each wait.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        cancel_event: Optional[threading.Event] = None,
        on_retry: Optional[Callable[[int], Any]] = None,
    ):
        self.max_attempts = max(1, int(max_attempts if max_attempts is not None else DEFAULT_MAX_RETRIES))
        self.base_delay = max(0.0, float(base_delay if base_delay is not None else DEFAULT_RETRY_DELAY))
        self.sleep = sleep
        self.cancel_event = cancel_event
        self.on_retry = on_retry
        self.state = RetryState.REQUESTING
        self.attempt = 1

    @property
    def finished(self) -> bool:
        return self.state in (RetryState.SUCCEEDED, RetryState.EXHAUSTED)

    def cancelled(self) -> bool:
        return bool(self.cancel_event is not None and self.cancel_event.is_set())

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * attempt

    def _require(self, state: RetryState):
        if self.state is not state:
            raise RuntimeError(f"invalid transition from {self.state.value}, expected {state.value}")

    def succeed(self):
        self._require(RetryState.REQUESTING)
        self.state = RetryState.SUCCEEDED

    def not_ready(self) -> Optional[float]:
        """Record a not-ready answer. Returns the pending delay, or None when the attempt cap is reached."""
        self._require(RetryState.REQUESTING)
        if self.attempt >= self.max_attempts:
            self.state = RetryState.EXHAUSTED
            return None
        self.state = RetryState.BACKOFF
        return self.delay_for(self.attempt)

    def _pause(self, delay: float) -> bool:
        # returns True when the wait was interrupted by cancellation
        if self.sleep is not None:
            self.sleep(delay)
            return self.cancelled()
        if self.cancel_event is not None:
            return self.cancel_event.wait(delay)
        time.sleep(delay)
        return False

    def backoff(self) -> bool:
        """Wait out the current backoff. Returns False if the sequence was cancelled meanwhile."""
        self._require(RetryState.BACKOFF)
        delay = self.delay_for(self.attempt)
        if self.on_retry is not None:
            self.on_retry(self.attempt)
        logger.info("stats not ready (attempt %d/%d), retrying in %.1fs", self.attempt, self.max_attempts, delay)
        if self._pause(delay):
            return False
        self.attempt += 1
        self.state = RetryState.REQUESTING
        return True


def run_with_backoff(request_once: Callable[[int], Tuple[str, Any]], machine: StatsRetryMachine) -> Any:
    """Drive a StatsRetryMachine with a request function.

    request_once(attempt) returns ('ready', value) or ('not_ready', None) and raises for terminal failures.
    Raises RetryExhausted when every attempt was not ready, RetryCancelled when cancelled.
    """
    while True:
        if machine.cancelled():
            raise RetryCancelled()
        outcome, value = request_once(machine.attempt)
        if outcome == 'ready':
            machine.succeed()
            return value
        if machine.not_ready() is None:
            raise RetryExhausted(machine.attempt)
        if not machine.backoff():
            raise RetryCancelled()


def _safe_int_from_headers(headers: Dict[str, Any], key: str) -> Optional[int]:
    try:
        val = headers.get(key)
        return int(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def parse_rate_limit_reset(headers: Dict[str, Any]) -> Optional[datetime]:
    """Return the X-RateLimit-Reset header as an aware UTC datetime, or None when absent/unparseable."""
    reset = _safe_int_from_headers(headers or {}, 'X-RateLimit-Reset')
    if reset is None:
        return None
    try:
        return datetime.fromtimestamp(reset, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


__all__ = [
    "RetryState",
    "RetryExhausted",
    "RetryCancelled",
    "StatsRetryMachine",
    "run_with_backoff",
    "parse_rate_limit_reset",
]
