"""
Reliability utilities.

Includes the bounded retry policy used around optimistic transactions.
"""

import asyncio
import logging
import random
from typing import Any, Callable

from poultrymitra.app.core.exceptions import TransactionConflictError

logger = logging.getLogger("poultrymitra.reliability")


class ConflictRetryPolicy:
    """
    Bounded retry for optimistic transactions.

    Each attempt must open its own session and re-read everything it depends
    on. Only TransactionConflictError is retried; every other error surfaces
    on the first attempt. When 'max_attempts' conflicts happen in a row the
    last conflict is raised to the caller.
    """
    def __init__(self, max_attempts: int = 5, backoff_ms: int = 20):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        attempt = 1
        while True:
            try:
                return await func(*args, **kwargs)
            except TransactionConflictError as e:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Transaction conflict, giving up",
                        extra={"attempts": attempt, "operation": getattr(func, "__name__", "?")}
                    )
                    raise e
                logger.info(
                    "Transaction conflict, retrying",
                    extra={"attempt": attempt, "operation": getattr(func, "__name__", "?")}
                )
                await asyncio.sleep(self.delay_for(attempt))
                attempt += 1

    def delay_for(self, attempt: int) -> float:
        """Linear backoff with jitter, in seconds."""
        base = self.backoff_ms * attempt
        return (base + random.uniform(0, self.backoff_ms)) / 1000.0
