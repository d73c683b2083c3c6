"""
Response Analysis

Mention detection, citation classification, per-question scoring and
run-level aggregation, gaps and recommendations, trends across runs.
"""

from .models import CitationBucket, MentionResult, CitationAnalysis, QuestionAnalysis
from .mentions import find_mentions, count_mentions, mention_terms
from .citations import CitationClassifier, influence_score, relevance_score
from .analyzer import ResponseAnalyzer, question_score, citation_component, BUCKET_VALUES
from .aggregate import (
    RunAggregate,
    CompetitorScore,
    aggregate_run,
    citation_stats,
    consistency_score,
)
from .recommendations import Recommendation, build_recommendations, content_gaps
from .trends import compute_trends, trend_direction

__all__ = [
    "CitationBucket",
    "MentionResult",
    "CitationAnalysis",
    "QuestionAnalysis",
    "find_mentions",
    "count_mentions",
    "mention_terms",
    "CitationClassifier",
    "influence_score",
    "relevance_score",
    "ResponseAnalyzer",
    "question_score",
    "citation_component",
    "BUCKET_VALUES",
    "RunAggregate",
    "CompetitorScore",
    "aggregate_run",
    "citation_stats",
    "consistency_score",
    "Recommendation",
    "build_recommendations",
    "content_gaps",
    "compute_trends",
    "trend_direction",
]
