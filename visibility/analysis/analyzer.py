"""
Response Analyzer

Turns one raw answer into a QuestionAnalysis:
1. Brand mention detection (name, aliases, domain, brand label)
2. Citation classification with influence and relevance
3. Question score

Scoring:
    score = clamp(60 * mention + 40 * c, 0, 100)

where ``c`` in [-1, 1] is the mean of bucket values weighted by each
citation's (influence + relevance) / 2. A mention backed only by owned
citations scores 100; no mention with only competitor citations scores 0.
"""

import logging
from typing import List

from ..context.models import CompanyContext
from ..integrations.base import RawAnswer
from .citations import CitationClassifier
from .mentions import count_mentions, find_mentions, mention_terms
from .models import CitationAnalysis, CitationBucket, QuestionAnalysis

logger = logging.getLogger(__name__)

MENTION_POINTS = 60.0
CITATION_POINTS = 40.0

BUCKET_VALUES = {
    CitationBucket.OWNED: 1.0,
    CitationBucket.OPERATED: 0.8,
    CitationBucket.EARNED: 0.3,
    CitationBucket.COMPETITOR: -1.0,
}


def citation_component(citations: List[CitationAnalysis]) -> float:
    """Weighted mean bucket value in [-1, 1]; 0 without citations."""
    if not citations:
        return 0.0

    weights = [(c.influence_score + c.relevance_score) / 2.0 for c in citations]
    total_weight = sum(weights)
    if total_weight <= 0:
        return sum(BUCKET_VALUES[c.bucket] for c in citations) / len(citations)

    weighted = sum(w * BUCKET_VALUES[c.bucket] for w, c in zip(weights, citations))
    return max(-1.0, min(1.0, weighted / total_weight))


def question_score(mention_detected: bool, citations: List[CitationAnalysis]) -> float:
    score = MENTION_POINTS * (1.0 if mention_detected else 0.0)
    score += CITATION_POINTS * citation_component(citations)
    return round(max(0.0, min(100.0, score)), 2)


class ResponseAnalyzer:
    """
    Analyzes answer-engine responses for one company.

    Usage:
        analyzer = ResponseAnalyzer()
        analysis = analyzer.analyze(raw_answer, context, question_text)
    """

    def analyze(
        self,
        raw_answer: RawAnswer,
        context: CompanyContext,
        question_text: str,
    ) -> QuestionAnalysis:
        """
        Analyze one answer.

        Args:
            raw_answer: Text and cited URLs from the answer engine
            context: Company the run is assessing
            question_text: Question that produced the answer (for relevance)

        Returns:
            QuestionAnalysis with mention, citations and score
        """
        text = raw_answer.text or ""

        mention = find_mentions(text, mention_terms(context))

        classifier = CitationClassifier(context)
        citations = classifier.analyze(raw_answer.citations, text, question_text)

        competitor_mentions = {
            competitor.name: count_mentions(text, [competitor.name])
            for competitor in context.competitors
        }

        score = question_score(mention.detected, citations)

        logger.debug(
            f"Analyzed answer for {context.name}: mention={mention.detected} "
            f"citations={len(citations)} score={score}"
        )

        return QuestionAnalysis(
            answer_text=text,
            mention=mention,
            citations=citations,
            question_score=score,
            competitor_mentions=competitor_mentions,
            question_text=question_text,
        )
