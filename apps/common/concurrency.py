"""
Bounded retry for optimistic-concurrency conflicts.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any

from django.conf import settings

from apps.common.types import ConflictError

logger = logging.getLogger(__name__)


def retry_on_conflict(
    max_retries: int | None = None,
    delay: float | None = None,
    exceptions: tuple[type[BaseException], ...] = (ConflictError,),
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Re-run a unit of work when it loses an optimistic-lock race.

    The wrapped callable must open its own ``transaction.atomic()`` block so
    each attempt re-reads the aggregate. Anything other than ``exceptions``
    propagates on the first attempt. Defaults come from
    ``WALLET_CONFLICT_MAX_RETRIES`` / ``WALLET_CONFLICT_RETRY_DELAY`` and are
    read at call time so tests can override them.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts = max_retries if max_retries is not None else settings.WALLET_CONFLICT_MAX_RETRIES
            backoff = delay if delay is not None else settings.WALLET_CONFLICT_RETRY_DELAY
            attempts = max(1, attempts)

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= attempts - 1:
                        logger.error(
                            "🔥 [Concurrency] All %s attempts failed for %s: %s",
                            attempts,
                            func.__qualname__,
                            e,
                        )
                        raise
                    logger.warning(
                        "🔄 [Concurrency] Retry %s for %s: %s",
                        attempt + 1,
                        func.__qualname__,
                        e,
                    )
                    if backoff:
                        time.sleep(backoff * (attempt + 1))

            raise RuntimeError("retry_on_conflict exhausted without an outcome")  # pragma: no cover

        return wrapper

    return decorator
