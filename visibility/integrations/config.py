"""
Answer Engine Configuration

Explicit configuration object for the answer engine client, built from
settings once and passed in at construction.

Environment variables (via Settings):
- PERPLEXITY_API_KEY: Perplexity API key (required for assessments)
- PERPLEXITY_MODEL: Model to use (default: sonar)
- ANSWER_ENGINE_TIMEOUT: HTTP timeout in seconds
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..utils.config import Settings, get_settings
from .perplexity import PerplexityClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerEngineConfig:
    """Configuration for the answer engine."""

    api_key: Optional[str] = None
    model: str = "sonar"
    timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AnswerEngineConfig":
        settings = settings or get_settings()
        return cls(
            api_key=settings.PERPLEXITY_API_KEY,
            model=settings.PERPLEXITY_MODEL,
            timeout=settings.ANSWER_ENGINE_TIMEOUT,
        )

    @property
    def is_configured(self) -> bool:
        """Check if an API key is present."""
        return bool(self.api_key)


def create_answer_engine(config: Optional[AnswerEngineConfig] = None) -> Optional[PerplexityClient]:
    """
    Create the Perplexity answer engine.

    Args:
        config: Engine configuration (defaults to settings)

    Returns:
        PerplexityClient or None if not configured
    """
    config = config or AnswerEngineConfig.from_settings()
    if not config.is_configured:
        logger.warning("Perplexity API key not configured")
        return None

    logger.info(f"Initialized Perplexity client (model={config.model})")
    return PerplexityClient(api_key=config.api_key, model=config.model, timeout=config.timeout)
