"""
Retry Policy

Exponential backoff around a single answer-engine call. Applied by the
orchestrator to every ``ask`` so all engines (real or fake) retry alike.
Each attempt is bounded by its own wall-clock timeout.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from .base import AnswerEngineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays cannot be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(self.initial_delay * (self.backoff ** (attempt - 1)), self.max_delay)

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        timeout: Optional[float] = None,
        label: str = "request",
    ) -> Tuple[T, int]:
        """
        Run ``operation`` until it succeeds, fails permanently, or attempts run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            timeout: Per-attempt timeout in seconds (None = unbounded)
            label: Used in log messages

        Returns:
            (result, attempts used)

        Raises:
            AnswerEngineError: The last error when no attempt succeeded
        """
        last_error: Optional[AnswerEngineError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                if timeout is not None:
                    result = await asyncio.wait_for(operation(), timeout=timeout)
                else:
                    result = await operation()
                return result, attempt

            except asyncio.TimeoutError:
                last_error = AnswerEngineError(
                    f"{label} timed out after {timeout:.0f}s", retryable=True
                )
            except AnswerEngineError as e:
                last_error = e

            if not last_error.retryable:
                logger.warning(f"{label} failed permanently: {last_error}")
                last_error.attempts = attempt
                raise last_error

            if attempt < self.max_attempts:
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{label} failed ({last_error}), retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                await asyncio.sleep(delay)

        logger.warning(f"{label} failed after {self.max_attempts} attempts: {last_error}")
        last_error.attempts = self.max_attempts
        raise last_error
