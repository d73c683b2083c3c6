"""
Gaps and Recommendations

Follow-up advice derived from one run's analyses, with no model calls:
the same analyses always give the same gaps and the same ranked advice.

Gaps:
- Questions whose answer never mentioned the company
- Questions where competitor citations outnumber the company's own
- Question types with a low mention rate

Recommendations are ranked by priority = impact / effort (scaled to 0-1).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .models import CitationBucket, QuestionAnalysis

logger = logging.getLogger(__name__)

# A question type below this mention rate is a gap
LOW_TYPE_MENTION_RATE = 0.4
# Run-level thresholds that trigger advice
LOW_MENTION_RATE = 0.5
LOW_CONSISTENCY = 70.0

COMPANY_BUCKETS = (CitationBucket.OWNED, CitationBucket.OPERATED)


@dataclass
class Recommendation:
    """One piece of advice for the assessed company."""
    category: str  # content, topic, competitive, citations, consistency
    title: str
    description: str
    impact: float  # 0-1
    effort: float  # 0-1

    @property
    def priority(self) -> float:
        # Ratio of 10 or more is top priority
        return round(min(self.impact / max(self.effort, 0.1) / 10.0, 1.0), 4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "effort": self.effort,
            "priority": self.priority,
        }


def competitor_dominated(analysis: QuestionAnalysis) -> bool:
    """True when competitor citations outnumber owned and operated ones."""
    company = sum(1 for c in analysis.citations if c.bucket in COMPANY_BUCKETS)
    competitor = sum(1 for c in analysis.citations if c.bucket == CitationBucket.COMPETITOR)
    return competitor > company


def content_gaps(
    analyzed: Sequence[Tuple[str, QuestionAnalysis]],
    by_question_type: Dict[str, Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Collect the run's gaps.

    Args:
        analyzed: (question_type, analysis) pairs in question order
        by_question_type: Per-type stats with a ``mention_rate`` entry

    Returns:
        Dict with unmentioned questions, competitor-dominated questions and
        low-mention question types (sorted by name)
    """
    unmentioned = [
        {
            "question": analysis.question_text,
            "question_type": question_type,
            "question_score": analysis.question_score,
        }
        for question_type, analysis in analyzed
        if not analysis.mention_detected
    ]

    dominated = []
    for question_type, analysis in analyzed:
        if not competitor_dominated(analysis):
            continue
        names = sorted({c.competitor_name for c in analysis.citations if c.competitor_name})
        dominated.append({
            "question": analysis.question_text,
            "question_type": question_type,
            "competitor_citations": sum(1 for c in analysis.citations if c.bucket == CitationBucket.COMPETITOR),
            "company_citations": sum(1 for c in analysis.citations if c.bucket in COMPANY_BUCKETS),
            "competitors": names,
        })

    low_types = sorted(
        question_type for question_type, stats in by_question_type.items()
        if stats["mention_rate"] < LOW_TYPE_MENTION_RATE
    )

    return {
        "unmentioned_questions": unmentioned,
        "competitor_dominated_questions": dominated,
        "low_mention_types": low_types,
    }


def build_recommendations(
    company_name: str,
    gaps: Dict[str, Any],
    mention_rate: float,
    consistency: float,
    citation_stats: Dict[str, Any],
    ranking: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Turn gaps and run scores into ranked recommendations.

    ``ranking`` holds benchmark rows ({"name", "rank", "visibility_score",
    "is_target"}) for the company and its competitors.
    """
    recommendations: List[Recommendation] = []

    if mention_rate < LOW_MENTION_RATE:
        missed = len(gaps["unmentioned_questions"])
        recommendations.append(Recommendation(
            category="content",
            title="Increase brand mentions in AI answers",
            description=(
                f"{company_name} is mentioned in {mention_rate:.0%} of answers; "
                f"{missed} questions produced no mention. Publish content that answers "
                f"these questions directly and names {company_name}."
            ),
            impact=0.8,
            effort=0.6,
        ))

    low_types = gaps["low_mention_types"]
    if low_types:
        recommendations.append(Recommendation(
            category="topic",
            title=f"Improve visibility in {low_types[0]} questions",
            description=(
                f"Mention rate is below {LOW_TYPE_MENTION_RATE:.0%} for "
                f"{', '.join(low_types)} questions. Focus new content on these question types."
            ),
            impact=0.6,
            effort=0.5,
        ))

    dominated = gaps["competitor_dominated_questions"]
    if dominated:
        target = next((r for r in ranking if r["is_target"]), None)
        leader = next((r for r in ranking if not r["is_target"]), None)
        description = f"Competitor sources outnumber {company_name}'s own in {len(dominated)} answers."
        if target and leader and leader["rank"] < target["rank"]:
            description += (
                f" {company_name} ranks #{target['rank']} of {len(ranking)}; "
                f"{leader['name']} leads with visibility {leader['visibility_score']:.0f}."
            )
        recommendations.append(Recommendation(
            category="competitive",
            title="Win back answers dominated by competitors",
            description=description,
            impact=0.9,
            effort=0.8,
        ))

    by_bucket = citation_stats.get("by_bucket", {})
    company_citations = by_bucket.get(CitationBucket.OWNED.value, 0) + by_bucket.get(CitationBucket.OPERATED.value, 0)
    if citation_stats.get("total") and not company_citations:
        recommendations.append(Recommendation(
            category="citations",
            title="Get owned pages cited",
            description=(
                f"None of the {citation_stats['total']} cited sources belong to {company_name}. "
                f"Make product, pricing and comparison pages easy for answer engines to cite."
            ),
            impact=0.7,
            effort=0.5,
        ))

    if consistency < LOW_CONSISTENCY:
        recommendations.append(Recommendation(
            category="consistency",
            title="Make brand messaging consistent",
            description=(
                f"Question scores vary widely (consistency {consistency:.0f}/100). "
                f"Align descriptions of {company_name} across owned and third-party pages."
            ),
            impact=0.5,
            effort=0.3,
        ))

    recommendations.sort(key=lambda r: (-r.priority, r.category))
    logger.debug(f"Built {len(recommendations)} recommendations for {company_name}")
    return [r.to_dict() for r in recommendations]
