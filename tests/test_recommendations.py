"""
Tests for gaps and recommendations.
"""

import pytest

from visibility.analysis.aggregate import aggregate_run
from visibility.analysis.models import CitationAnalysis, CitationBucket, MentionResult, QuestionAnalysis
from visibility.analysis.recommendations import (
    LOW_TYPE_MENTION_RATE,
    Recommendation,
    build_recommendations,
    competitor_dominated,
    content_gaps,
)


def _citation(bucket, competitor_name=None, position=1):
    return CitationAnalysis(
        url=f"https://example.com/{position}",
        position=position,
        bucket=bucket,
        influence_score=0.5,
        relevance_score=0.5,
        competitor_name=competitor_name,
    )


def _analysis(text, mentioned=True, citations=(), score=50.0):
    return QuestionAnalysis(
        answer_text="...",
        mention=MentionResult(detected=mentioned, count=1 if mentioned else 0),
        citations=list(citations),
        question_score=score,
        question_text=text,
    )


RIVA = _citation(CitationBucket.COMPETITOR, "Riva", 1)
NIMBUS = _citation(CitationBucket.COMPETITOR, "Nimbus", 2)
OWNED = _citation(CitationBucket.OWNED, position=3)


class TestContentGaps:

    def test_competitor_dominated(self):
        assert competitor_dominated(_analysis("q", citations=[RIVA, NIMBUS, OWNED]))
        assert not competitor_dominated(_analysis("q", citations=[RIVA, OWNED]))
        assert not competitor_dominated(_analysis("q"))

    def test_gaps_listed_in_question_order(self):
        analyzed = [
            ("comparison", _analysis("Acme vs Riva?", mentioned=False, citations=[RIVA, NIMBUS], score=0.0)),
            ("comparison", _analysis("Best alternatives?", mentioned=True, citations=[OWNED])),
            ("recommendation", _analysis("Which tool?", mentioned=False, score=10.0)),
        ]
        by_type = {
            "comparison": {"mention_rate": 0.5},
            "recommendation": {"mention_rate": 0.0},
        }

        gaps = content_gaps(analyzed, by_type)

        assert [g["question"] for g in gaps["unmentioned_questions"]] == ["Acme vs Riva?", "Which tool?"]
        assert gaps["competitor_dominated_questions"] == [{
            "question": "Acme vs Riva?",
            "question_type": "comparison",
            "competitor_citations": 2,
            "company_citations": 0,
            "competitors": ["Nimbus", "Riva"],
        }]
        assert gaps["low_mention_types"] == ["recommendation"]

    def test_type_at_threshold_is_not_a_gap(self):
        gaps = content_gaps([], {"comparison": {"mention_rate": LOW_TYPE_MENTION_RATE}})

        assert gaps["low_mention_types"] == []


class TestRecommendations:

    def _gaps(self, unmentioned=0, dominated=0, low_types=()):
        return {
            "unmentioned_questions": [{"question": f"q{i}"} for i in range(unmentioned)],
            "competitor_dominated_questions": [{"question": f"d{i}"} for i in range(dominated)],
            "low_mention_types": list(low_types),
        }

    def test_priority_is_impact_over_effort(self):
        assert Recommendation("content", "t", "d", impact=0.8, effort=0.4).priority == 0.2
        assert Recommendation("content", "t", "d", impact=1.0, effort=0.0).priority == 1.0

    def test_strong_run_gets_no_advice(self):
        stats = {"total": 4, "by_bucket": {"owned": 3, "operated": 0, "earned": 1, "competitor": 0}}

        assert build_recommendations("Acme Corp", self._gaps(), 0.9, 95.0, stats, []) == []

    def test_weak_run_gets_ranked_advice(self):
        stats = {"total": 3, "by_bucket": {"owned": 0, "operated": 0, "earned": 1, "competitor": 2}}
        ranking = [
            {"name": "Riva", "rank": 1, "visibility_score": 72.0, "is_target": False},
            {"name": "Acme Corp", "rank": 2, "visibility_score": 20.0, "is_target": True},
        ]

        recommendations = build_recommendations(
            "Acme Corp",
            self._gaps(unmentioned=3, dominated=2, low_types=["comparison"]),
            0.25, 50.0, stats, ranking,
        )

        categories = [r["category"] for r in recommendations]
        assert categories == ["consistency", "citations", "content", "topic", "competitive"]
        priorities = [r["priority"] for r in recommendations]
        assert priorities == sorted(priorities, reverse=True)
        competitive = recommendations[-1]
        assert "ranks #2 of 2" in competitive["description"]
        assert "Riva leads" in competitive["description"]

    def test_deterministic(self):
        stats = {"total": 1, "by_bucket": {"owned": 0, "operated": 0, "earned": 0, "competitor": 1}}
        gaps = self._gaps(unmentioned=1, dominated=1)

        first = build_recommendations("Acme Corp", gaps, 0.0, 100.0, stats, [])
        second = build_recommendations("Acme Corp", gaps, 0.0, 100.0, stats, [])

        assert first == second


class TestAggregateBreakdown:

    def test_breakdown_carries_gaps_and_recommendations(self, sample_context):
        analyzed = [
            ("comparison", _analysis("Acme vs Riva?", mentioned=False, citations=[RIVA], score=0.0)),
            ("recommendation", _analysis("Which analytics tool?", mentioned=True, citations=[OWNED], score=100.0)),
        ]

        result = aggregate_run(sample_context, analyzed, questions_total=2, questions_failed=0)

        gaps = result.score_breakdown["gaps"]
        assert [g["question"] for g in gaps["unmentioned_questions"]] == ["Acme vs Riva?"]
        assert [g["question"] for g in gaps["competitor_dominated_questions"]] == ["Acme vs Riva?"]
        assert gaps["low_mention_types"] == ["comparison"]
        categories = {r["category"] for r in result.score_breakdown["recommendations"]}
        assert {"topic", "competitive", "consistency"} <= categories
        assert "content" not in categories

    @pytest.mark.parametrize("mentioned", [True, False])
    def test_breakdown_is_json_friendly(self, sample_context, mentioned):
        result = aggregate_run(
            sample_context, [("comparison", _analysis("q", mentioned=mentioned))],
            questions_total=1, questions_failed=0,
        )

        for recommendation in result.score_breakdown["recommendations"]:
            assert set(recommendation) == {"category", "title", "description", "impact", "effort", "priority"}
