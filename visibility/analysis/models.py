"""
Response Analysis Models

Results of analyzing one answer-engine response: mention detection,
classified citations, and the per-question score.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CitationBucket(str, Enum):
    """Relationship of a cited source to the assessed company."""
    OWNED = "owned"  # Company's own domain
    OPERATED = "operated"  # Company-controlled subdomain or profile
    EARNED = "earned"  # Unaffiliated third party
    COMPETITOR = "competitor"  # A known competitor's property


@dataclass
class MentionResult:
    """Outcome of brand mention detection."""
    detected: bool = False
    count: int = 0
    first_position: Optional[int] = None  # Character offset of first match
    matched_terms: List[str] = field(default_factory=list)


@dataclass
class CitationAnalysis:
    """One classified citation."""
    url: str
    position: int  # 1-based
    bucket: CitationBucket
    domain: Optional[str] = None
    influence_score: float = 0.0  # 0-1
    relevance_score: float = 0.0  # 0-1
    competitor_name: Optional[str] = None
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "position": self.position,
            "domain": self.domain,
            "bucket": self.bucket.value,
            "influence_score": self.influence_score,
            "relevance_score": self.relevance_score,
            "competitor_name": self.competitor_name,
        }


@dataclass
class QuestionAnalysis:
    """Full analysis of one answered question."""
    answer_text: str
    mention: MentionResult
    citations: List[CitationAnalysis] = field(default_factory=list)
    question_score: float = 0.0  # 0-100
    competitor_mentions: Dict[str, int] = field(default_factory=dict)  # competitor name -> count
    question_text: str = ""

    @property
    def mention_detected(self) -> bool:
        return self.mention.detected

    def bucket_counts(self) -> Dict[str, int]:
        counts = {bucket.value: 0 for bucket in CitationBucket}
        for citation in self.citations:
            counts[citation.bucket.value] += 1
        return counts
