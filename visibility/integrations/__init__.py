"""
Answer Engine Integrations

Clients for conversational answer engines:
- Base: AnswerEngine interface, RawAnswer, AnswerEngineError
- Perplexity: Production engine
- Retry: Explicit retry policy applied by the pipeline
- Config: Settings-driven construction
"""

from .base import AnswerEngine, AnswerEngineError, ConnectivityResult, RawAnswer
from .retry import RetryPolicy
from .perplexity import PerplexityClient, is_retryable_status
from .config import AnswerEngineConfig, create_answer_engine

__all__ = [
    "AnswerEngine",
    "AnswerEngineError",
    "ConnectivityResult",
    "RawAnswer",
    "RetryPolicy",
    "PerplexityClient",
    "is_retryable_status",
    "AnswerEngineConfig",
    "create_answer_engine",
]
