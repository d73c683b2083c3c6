"""
Answer Engine Interface

Common types for conversational answer engines. The pipeline only talks to
``AnswerEngine``; Perplexity is one implementation, test fakes are another.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


class AnswerEngineError(Exception):
    """
    Error raised by an answer engine call.

    ``retryable`` tells the retry policy whether another attempt can help
    (rate limits, server errors, timeouts) or not (bad key, bad request).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        self.attempts = 0  # Set by RetryPolicy when giving up


@dataclass
class RawAnswer:
    """Unprocessed answer to one question."""
    text: str
    citations: List[str] = field(default_factory=list)  # URLs in answer order
    model: str = ""
    tokens_used: int = 0


@dataclass
class ConnectivityResult:
    """Outcome of an answer engine self-test."""
    success: bool
    errors: List[str] = field(default_factory=list)
    latency_ms: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "errors": list(self.errors),
            "latency_ms": self.latency_ms,
        }


class AnswerEngine(ABC):
    """A conversational engine that answers questions with cited sources."""

    name: str = "answer_engine"

    @abstractmethod
    async def ask(self, question_text: str) -> RawAnswer:
        """
        Ask one question, exactly one upstream call.

        Raises:
            AnswerEngineError: On any failure
        """

    @abstractmethod
    async def test_connectivity(self) -> ConnectivityResult:
        """Cheap self-test run before any question is sent."""

    async def close(self) -> None:
        """Release network resources."""
        return None
