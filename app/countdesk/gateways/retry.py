from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from app.countdesk.core.logging import log_json
from app.countdesk.core.metrics import metrics
from app.countdesk.gateways.base import ExternalSystemError, GatewayThrottled

logger = logging.getLogger("countdesk.gateway")

T = TypeVar("T")


def call_with_backoff(
    operation: str,
    func: Callable[[], T],
    *,
    max_attempts: int,
    backoff_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``func``, retrying throttled calls with linearly increasing delays.

    The n-th retry waits ``n * backoff_seconds`` (or the server's retry hint
    when that is longer). Non-throttle errors propagate immediately.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except GatewayThrottled as exc:
            metrics.increment_gateway_throttled(operation)
            if attempt >= attempts:
                raise ExternalSystemError(
                    f"{operation} throttled after {attempts} attempts",
                    details={"operation": operation, "attempts": attempts},
                ) from exc
            delay = backoff_seconds * attempt
            if exc.retry_after is not None:
                delay = max(delay, exc.retry_after)
            log_json(
                logger,
                {
                    "event": "gateway_throttled",
                    "operation": operation,
                    "attempt": attempt,
                    "retry_in_seconds": delay,
                },
                level=logging.WARNING,
            )
            sleep(delay)
    raise AssertionError("unreachable")
