"""
Retry decisions for token-endpoint calls.

Background for newcomers:
    Token minting itself never retries. The HTTP layer underneath the remote
    fetch asks a ``RetryCoordinator`` after each failure whether another
    attempt is allowed. The answer depends on a ``BackOffPolicy`` flag set:

    * ``EXCEPTION``: transport exceptions (connection reset, timeout) are
      retried. Off by default: a failing network raises after one attempt.
    * ``UNSUCCESSFUL_RESPONSE_503``: a 503 from the server is retried. On by
      default.

    Either way the total number of attempts is capped (3 by default). When
    attempts run out the last error reaches the caller unchanged.
"""

from __future__ import annotations

import enum
import logging
import random
import time
from typing import Any, Callable, Mapping

import requests

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class BackOffPolicy(enum.Flag):
    NONE = 0
    EXCEPTION = enum.auto()
    UNSUCCESSFUL_RESPONSE_503 = enum.auto()


DEFAULT_BACKOFF_POLICY = BackOffPolicy.UNSUCCESSFUL_RESPONSE_503


class RetryCoordinator:
    """Decides whether a failed attempt may be retried, and how long to wait."""

    def __init__(
        self,
        policy: BackOffPolicy = DEFAULT_BACKOFF_POLICY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = 0.25,
        max_delay: float = 16.0,
    ) -> None:
        self.policy = policy
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def should_retry_exception(self, exc: BaseException, attempt: int) -> bool:
        if BackOffPolicy.EXCEPTION not in self.policy:
            return False
        if isinstance(exc, requests.HTTPError):
            return False
        return isinstance(exc, requests.RequestException) and attempt < self.max_attempts

    def should_retry_response(self, status_code: int, attempt: int) -> bool:
        if BackOffPolicy.UNSUCCESSFUL_RESPONSE_503 not in self.policy:
            return False
        return status_code == 503 and attempt < self.max_attempts

    def delay(self, attempt: int) -> float:
        """Exponential backoff with +/-10% jitter for the wait after ``attempt``."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return max(0.0, delay + random.uniform(-delay * 0.1, delay * 0.1))


class RetryingTransport:
    """
    Wraps a ``requests.Session``-like object and applies a ``RetryCoordinator``
    around each form POST.
    """

    def __init__(
        self,
        session: Any,
        coordinator: RetryCoordinator,
        timeout: float,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.session = session
        self.coordinator = coordinator
        self.timeout = timeout
        self._sleep = sleep or time.sleep

    def post(self, url: str, data: Mapping[str, str]) -> requests.Response:
        attempt = 1
        while True:
            try:
                resp = self.session.post(url, data=data, timeout=self.timeout)
            except requests.RequestException as e:
                if not self.coordinator.should_retry_exception(e, attempt):
                    raise
                logger.warning("Token request failed (%s); retrying attempt=%d", type(e).__name__, attempt)
            else:
                if not self.coordinator.should_retry_response(resp.status_code, attempt):
                    return resp
                logger.warning("Token endpoint returned status=%s; retrying attempt=%d", resp.status_code, attempt)
            self._sleep(self.coordinator.delay(attempt))
            attempt += 1
