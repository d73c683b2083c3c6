"""
Tests for the Response Analyzer.

Covers mention detection, citation buckets, influence/relevance scoring
and the per-question score.
"""

from dataclasses import replace

import pytest

from visibility.analysis.analyzer import ResponseAnalyzer, citation_component, question_score
from visibility.analysis.citations import (
    CitationClassifier,
    influence_score,
    relevance_score,
)
from visibility.analysis.mentions import find_mentions, mention_terms
from visibility.analysis.models import CitationAnalysis, CitationBucket
from visibility.context.models import CompetitorRef
from visibility.integrations.base import RawAnswer


def _citation(bucket: CitationBucket, influence: float = 0.5, relevance: float = 0.5) -> CitationAnalysis:
    return CitationAnalysis(
        url="https://example.com",
        position=1,
        bucket=bucket,
        influence_score=influence,
        relevance_score=relevance,
    )


# ============================================================================
# Mentions
# ============================================================================

class TestMentions:

    @pytest.mark.parametrize("text", [
        "We recommend Acme Corp for this.",
        "AcmeCorp is solid.",
        "ACMECORP leads the pack.",
        "Try acme-corp today.",
        "acme corp has a free tier.",
    ])
    def test_name_variants_detected(self, sample_context, text):
        result = find_mentions(text, mention_terms(sample_context))

        assert result.detected

    def test_domain_counts_as_mention(self, sample_context):
        result = find_mentions("See acme.dev for details.", mention_terms(sample_context))

        assert result.detected

    def test_no_match_inside_other_words(self, sample_context):
        result = find_mentions("Acmeville has no analytics vendor.", mention_terms(sample_context))

        assert not result.detected
        assert result.count == 0
        assert result.first_position is None

    def test_count_and_first_position(self, sample_context):
        text = "Top picks: Riva, then Acme Corp. Many teams like Acme."

        result = find_mentions(text, mention_terms(sample_context))

        assert result.count == 2
        assert result.first_position == text.index("Acme Corp")

    def test_empty_text(self, sample_context):
        assert not find_mentions("", mention_terms(sample_context)).detected

    @pytest.mark.parametrize("name, domain, text", [
        ("Zürich Analytics", "zanalytics.ch", "ZÜRICH ANALYTICS is a strong choice."),
        ("Zürich Analytics", "zanalytics.ch", "Many teams use zürich-analytics."),
        ("メルカリ", "mercari.com", "メルカリは人気のフリマアプリです。"),
        ("楽天", "rakuten.co.jp", "日本では楽天が有名です。"),
        ("Acme Corp", "acme.dev", "Acme Corpは便利です。"),
    ])
    def test_names_in_any_script(self, sample_context, name, domain, text):
        context = replace(sample_context, name=name, domain=domain, aliases=[])

        result = find_mentions(text, mention_terms(context))

        assert result.detected
        assert result.count == 1

    def test_accented_name_not_found_inside_words(self, sample_context):
        context = replace(sample_context, name="Zürich Analytics", domain="zanalytics.ch", aliases=[])

        assert not find_mentions("Grosszürichanalyticsfirma", mention_terms(context)).detected


# ============================================================================
# Citations
# ============================================================================

class TestCitationBuckets:

    @pytest.mark.parametrize("url,bucket", [
        ("https://acme.dev/blog", CitationBucket.OWNED),
        ("https://www.acme.dev/pricing", CitationBucket.OWNED),
        ("https://blog.acme.dev/post", CitationBucket.OPERATED),
        ("https://docs.acme.dev", CitationBucket.OPERATED),
        ("https://www.linkedin.com/company/acme-corp", CitationBucket.OPERATED),
        ("https://www.linkedin.com/company/riva", CitationBucket.EARNED),
        ("https://riva.ai/compare", CitationBucket.COMPETITOR),
        ("https://blog.nimbus.ai/launch", CitationBucket.COMPETITOR),
        ("https://techcrunch.com/2024/acme", CitationBucket.EARNED),
        ("not a url at all", CitationBucket.EARNED),
        ("", CitationBucket.EARNED),
    ])
    def test_classification(self, sample_context, url, bucket):
        assert CitationClassifier(sample_context).classify(url).bucket == bucket

    def test_encoded_profile_url_carries_accented_brand(self, sample_context):
        context = replace(sample_context, name="Zürich Analytics", domain="zanalytics.ch", aliases=[])

        result = CitationClassifier(context).classify("https://www.linkedin.com/company/z%C3%BCrich-analytics")

        assert result.bucket == CitationBucket.OPERATED

    def test_competitor_name_recorded(self, sample_context):
        result = CitationClassifier(sample_context).classify("https://riva.ai/compare")

        assert result.competitor_name == "Riva"

    def test_owned_never_competitor(self, sample_context):
        # A misconfigured competitor sharing the company's domain
        context = replace(
            sample_context,
            competitors=[*sample_context.competitors, CompetitorRef(name="Acme Clone", domain="acme.dev")],
        )

        result = CitationClassifier(context).classify("https://acme.dev/blog")

        assert result.bucket == CitationBucket.OWNED


class TestInfluenceAndRelevance:

    def test_influence_non_increasing_in_position(self):
        scores = [influence_score(position, 1) for position in range(1, 8)]

        assert scores == sorted(scores, reverse=True)

    def test_influence_non_decreasing_in_references(self):
        scores = [influence_score(3, refs) for refs in range(0, 6)]

        assert scores == sorted(scores)

    def test_influence_bounds(self):
        assert 0.0 <= influence_score(50, 0) <= 1.0
        assert 0.0 <= influence_score(1, 100) <= 1.0

    def test_relevance_uses_url_and_citing_sentences(self):
        question = "Best product analytics platform for startups?"
        answer = "For startups, Acme is great [1]. Unrelated fact [2]."

        first = relevance_score(question, "https://acme.dev/product-analytics", answer, 1)
        second = relevance_score(question, "https://example.org/weather", answer, 2)

        assert first > second
        assert 0.0 <= second <= first <= 1.0

    def test_relevance_without_question_terms(self):
        assert relevance_score("", "https://acme.dev", "text", 1) == 0.0


# ============================================================================
# Scoring
# ============================================================================

class TestQuestionScore:

    def test_mention_with_owned_citations_scores_100(self):
        assert question_score(True, [_citation(CitationBucket.OWNED)]) == 100.0

    def test_no_mention_with_competitor_citations_scores_0(self):
        assert question_score(False, [_citation(CitationBucket.COMPETITOR)]) == 0.0

    def test_mention_without_citations(self):
        assert question_score(True, []) == 60.0

    def test_component_bounded(self):
        mixed = [_citation(CitationBucket.OWNED, 1.0, 1.0), _citation(CitationBucket.COMPETITOR, 0.1, 0.1)]

        assert -1.0 <= citation_component(mixed) <= 1.0
        assert citation_component(mixed) > 0

    def test_zero_weights_fall_back_to_plain_mean(self):
        citations = [_citation(CitationBucket.OWNED, 0.0, 0.0), _citation(CitationBucket.EARNED, 0.0, 0.0)]

        assert citation_component(citations) == pytest.approx(0.65)


class TestResponseAnalyzer:

    def test_full_analysis(self, sample_context):
        answer = RawAnswer(
            text="Acme Corp is a strong analytics option [1]. Riva competes on price [2].",
            citations=["https://acme.dev/blog", "https://riva.ai/compare"],
        )

        analysis = ResponseAnalyzer().analyze(answer, sample_context, "Best analytics tools?")

        assert analysis.mention_detected
        assert [c.bucket for c in analysis.citations] == [CitationBucket.OWNED, CitationBucket.COMPETITOR]
        assert [c.position for c in analysis.citations] == [1, 2]
        assert analysis.competitor_mentions == {"Riva": 1, "Nimbus": 0}
        assert 0.0 <= analysis.question_score <= 100.0
        assert analysis.bucket_counts() == {"owned": 1, "operated": 0, "earned": 0, "competitor": 1}

    def test_case_insensitive_mention_same_score(self, sample_context):
        citations = ["https://techcrunch.com/story"]
        lower = ResponseAnalyzer().analyze(RawAnswer("try acmecorp [1].", citations), sample_context, "q")
        upper = ResponseAnalyzer().analyze(RawAnswer("try ACMECORP [1].", citations), sample_context, "q")

        assert lower.mention_detected and upper.mention_detected
        assert lower.question_score == upper.question_score

    def test_non_latin_name_scores_mention(self, sample_context):
        context = replace(sample_context, name="メルカリ", domain="mercari.com", aliases=[])
        answer = RawAnswer("メルカリは人気のフリマアプリです。")

        analysis = ResponseAnalyzer().analyze(answer, context, "おすすめのフリマアプリは？")

        assert analysis.mention_detected
        assert analysis.question_score == 60.0

    def test_empty_answer(self, sample_context):
        analysis = ResponseAnalyzer().analyze(RawAnswer(""), sample_context, "Anything?")

        assert not analysis.mention_detected
        assert analysis.citations == []
        assert analysis.question_score == 0.0
