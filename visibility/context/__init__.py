"""
Knowledge Context

Typed company context built from the knowledge base for each assessment.
"""

from .models import CompanyContext, CompanySize, CompetitorRef, KnowledgeTag
from .builder import (
    KnowledgeContextBuilder,
    ContextBuildError,
    CompetitorParser,
    infer_category,
    infer_operated_domains,
    richness_score,
)

__all__ = [
    "CompanyContext",
    "CompanySize",
    "CompetitorRef",
    "KnowledgeTag",
    "KnowledgeContextBuilder",
    "ContextBuildError",
    "CompetitorParser",
    "infer_category",
    "infer_operated_domains",
    "richness_score",
]
