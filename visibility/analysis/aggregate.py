"""
Run Aggregation

Folds the per-question analyses of one run into run-level scores:
- Total score: mean of analyzed question scores
- Mention rate: mentioned / analyzed
- Citation stats: per-bucket counts, average influence and relevance
- Consistency: 100 - 2 * stddev of question scores (floored at 0)
- Per-type breakdown
- Competitor benchmark snapshots ranked together with the target
- Gaps and ranked recommendations

Failed questions never reach this module; they only show up in the
sample-size metadata.
"""

import logging
import statistics
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..context.models import CompanyContext
from ..utils.domain_filter import domain_matches
from .mentions import count_mentions
from .models import CitationBucket, QuestionAnalysis
from .recommendations import build_recommendations, content_gaps

logger = logging.getLogger(__name__)

# Weights for competitor/target benchmark visibility
MENTION_WEIGHT = 0.7
CITATION_WEIGHT = 0.3


@dataclass
class CompetitorScore:
    """Benchmark row for one competitor (or the target itself)."""
    name: str
    domain: Optional[str] = None
    mention_count: int = 0
    citation_count: int = 0
    visibility_score: float = 0.0  # 0-100
    rank: int = 0
    is_target: bool = False


@dataclass
class RunAggregate:
    """Everything written onto a run when it completes."""
    total_score: float
    mention_rate: float
    consistency_score: float
    citation_stats: Dict[str, Any]
    score_breakdown: Dict[str, Any]
    questions_total: int
    questions_analyzed: int
    questions_failed: int
    warnings: List[str] = field(default_factory=list)
    context_richness: float = 0.0
    competitors: List[CompetitorScore] = field(default_factory=list)


def citation_stats(analyses: Sequence[QuestionAnalysis]) -> Dict[str, Any]:
    """Per-bucket citation counts with average influence and relevance."""
    citations = [c for a in analyses for c in a.citations]
    by_bucket = {bucket.value: 0 for bucket in CitationBucket}
    for citation in citations:
        by_bucket[citation.bucket.value] += 1

    total = len(citations)
    return {
        "total": total,
        "by_bucket": by_bucket,
        "avg_influence_score": round(sum(c.influence_score for c in citations) / total, 4) if total else 0.0,
        "avg_relevance_score": round(sum(c.relevance_score for c in citations) / total, 4) if total else 0.0,
    }


def consistency_score(scores: Sequence[float]) -> float:
    """How stable question scores are across the run (100 = identical)."""
    if len(scores) < 2:
        return 100.0
    return round(max(0.0, 100.0 - 2.0 * statistics.pstdev(scores)), 2)


def type_breakdown(analyzed: Sequence[Tuple[str, QuestionAnalysis]]) -> Dict[str, Dict[str, Any]]:
    """Average score and mention rate per question type."""
    grouped: Dict[str, List[QuestionAnalysis]] = {}
    for question_type, analysis in analyzed:
        grouped.setdefault(question_type, []).append(analysis)

    breakdown = {}
    for question_type, items in grouped.items():
        breakdown[question_type] = {
            "questions": len(items),
            "average_score": round(sum(a.question_score for a in items) / len(items), 2),
            "mention_rate": round(sum(1 for a in items if a.mention_detected) / len(items), 4),
        }
    return breakdown


def competitor_benchmark(
    context: CompanyContext,
    analyses: Sequence[QuestionAnalysis],
) -> List[CompetitorScore]:
    """
    Score every known competitor and the target on the same answers.

    visibility = 100 * (0.7 * share of answers mentioning the company
                        + 0.3 * share of all citations pointing at it)
    Ranked by visibility, ties broken by name.
    """
    if not analyses:
        return []

    answered = len(analyses)
    all_citations = [c for a in analyses for c in a.citations]
    total_citations = len(all_citations)

    def score(mentioning: int, cited: int) -> float:
        mention_share = mentioning / answered
        citation_share = cited / total_citations if total_citations else 0.0
        return round(100.0 * (MENTION_WEIGHT * mention_share + CITATION_WEIGHT * citation_share), 2)

    rows: List[CompetitorScore] = []

    target_cited = sum(
        1 for c in all_citations
        if c.bucket in (CitationBucket.OWNED, CitationBucket.OPERATED)
    )
    target_mentioning = sum(1 for a in analyses if a.mention_detected)
    rows.append(CompetitorScore(
        name=context.name,
        domain=context.domain,
        mention_count=sum(a.mention.count for a in analyses),
        citation_count=target_cited,
        visibility_score=score(target_mentioning, target_cited),
        is_target=True,
    ))

    for competitor in context.competitors:
        mention_total = 0
        mentioning = 0
        for analysis in analyses:
            found = analysis.competitor_mentions.get(competitor.name)
            if found is None:
                found = count_mentions(analysis.answer_text, [competitor.name])
            mention_total += found
            mentioning += 1 if found else 0

        cited = sum(
            1 for c in all_citations
            if c.competitor_name == competitor.name
            or (competitor.domain and c.bucket == CitationBucket.COMPETITOR and domain_matches(c.domain, competitor.domain))
        )
        rows.append(CompetitorScore(
            name=competitor.name,
            domain=competitor.domain,
            mention_count=mention_total,
            citation_count=cited,
            visibility_score=score(mentioning, cited),
        ))

    rows.sort(key=lambda r: (-r.visibility_score, r.name.lower()))
    for rank, row in enumerate(rows, 1):
        row.rank = rank

    return rows


def aggregate_run(
    context: CompanyContext,
    analyzed: Sequence[Tuple[str, QuestionAnalysis]],
    questions_total: int,
    questions_failed: int,
) -> RunAggregate:
    """
    Build run-level results from the analyzed questions.

    Args:
        context: Company context used for the run
        analyzed: (question_type, analysis) pairs for answered questions
        questions_total: Questions generated for the run
        questions_failed: Questions that exhausted retries or timed out

    Returns:
        RunAggregate ready to be written by the run store

    Raises:
        ValueError: If there are no analyzed questions
    """
    if not analyzed:
        raise ValueError("Cannot aggregate a run without analyzed questions")

    analyses = [a for _, a in analyzed]
    scores = [a.question_score for a in analyses]
    analyzed_count = len(analyses)

    total_score = round(sum(scores) / analyzed_count, 2)
    mention_rate = round(sum(1 for a in analyses if a.mention_detected) / analyzed_count, 4)

    warnings = []
    if questions_failed:
        warnings.append(
            f"{analyzed_count} of {questions_total} questions analyzed; "
            f"{questions_failed} answer-engine queries failed"
        )

    benchmark = competitor_benchmark(context, analyses)
    target_row = next((r for r in benchmark if r.is_target), None)

    consistency = consistency_score(scores)
    stats = citation_stats(analyses)
    by_type = type_breakdown(analyzed)
    gaps = content_gaps(analyzed, by_type)
    ranking = [
        {"name": r.name, "rank": r.rank, "visibility_score": r.visibility_score, "is_target": r.is_target}
        for r in benchmark
    ]

    breakdown = {
        "by_question_type": by_type,
        "mentioned_questions": sum(1 for a in analyses if a.mention_detected),
        "target_rank": target_row.rank if target_row else None,
        "target_visibility_score": target_row.visibility_score if target_row else None,
        "ranked_companies": len(benchmark),
        "gaps": gaps,
        "recommendations": build_recommendations(context.name, gaps, mention_rate, consistency, stats, ranking),
    }

    logger.info(
        f"Aggregated run for {context.name}: score={total_score}, "
        f"mention_rate={mention_rate:.0%}, analyzed={analyzed_count}/{questions_total}"
    )

    return RunAggregate(
        total_score=total_score,
        mention_rate=mention_rate,
        consistency_score=consistency,
        citation_stats=stats,
        score_breakdown=breakdown,
        questions_total=questions_total,
        questions_analyzed=analyzed_count,
        questions_failed=questions_failed,
        warnings=warnings,
        context_richness=context.richness_score,
        competitors=[r for r in benchmark if not r.is_target],
    )
