"""
Tests for the Assessment Orchestrator.

End-to-end runs against an in-memory database and a fake answer engine.
"""

import asyncio
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from conftest import FakeAnswerEngine
from visibility.context.builder import KnowledgeContextBuilder
from visibility.database.repository import PersistenceError, RunStore
from visibility.integrations.base import AnswerEngineError, RawAnswer
from visibility.integrations.retry import RetryPolicy
from visibility.pipeline.orchestrator import AssessmentOrchestrator, PipelineConfig
from visibility.questions.generator import QuestionGenerator


class ProgressRecordingStore(RunStore):
    """RunStore that remembers the stored progress after every write."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.progress_history = []

    def _remember(self, run_id):
        self.progress_history.append(self.get_run(run_id)["progress_percentage"])

    def update_progress(self, run_id, *args, **kwargs):
        super().update_progress(run_id, *args, **kwargs)
        self._remember(run_id)

    def record_analysis(self, run_id, *args, **kwargs):
        result = super().record_analysis(run_id, *args, **kwargs)
        self._remember(run_id)
        return result

    def record_question_failure(self, run_id, *args, **kwargs):
        super().record_question_failure(run_id, *args, **kwargs)
        self._remember(run_id)


class BrokenWritesStore(RunStore):
    """RunStore whose analysis writes always fail."""

    def record_analysis(self, run_id, *args, **kwargs):
        raise PersistenceError("Database error during record_analysis: disk full", operation="record_analysis")


class SlowEngine(FakeAnswerEngine):
    async def ask(self, question_text: str) -> RawAnswer:
        await asyncio.sleep(1)
        return await super().ask(question_text)


class ReverseOrderEngine(FakeAnswerEngine):
    """Answers later questions first."""

    def __init__(self, question_texts, **kwargs):
        super().__init__(**kwargs)
        total = len(question_texts)
        self.delays = {text: 0.02 * (total - i) for i, text in enumerate(question_texts)}
        self.finished = []

    async def ask(self, question_text: str) -> RawAnswer:
        await asyncio.sleep(self.delays.get(question_text, 0))
        answer = await super().ask(question_text)
        self.finished.append(question_text)
        return answer


def _config(count=5, **overrides):
    values = {
        "question_count": count,
        "max_concurrent_questions": 2,
        "question_timeout": 5.0,
        "retry_policy": RetryPolicy(max_attempts=3, initial_delay=0),
    }
    values.update(overrides)
    return PipelineConfig(**values)


def _orchestrator(engine, store, company_repository, **config):
    return AssessmentOrchestrator(
        engine=engine,
        store=store,
        context_builder=KnowledgeContextBuilder(company_repository),
        config=_config(**config),
    )


def _question_texts(company_repository, company_id, count=5):
    context = KnowledgeContextBuilder(company_repository).build_context(company_id)
    return [q.text for q in QuestionGenerator().generate(context, count)]


class TestSuccessfulRun:

    @pytest.mark.asyncio
    async def test_completes_with_all_questions(self, store, company_repository, seeded_company, fake_engine):
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "completed"
        assert final["progress_percentage"] == 100
        assert final["questions_total"] == 5
        assert final["questions_analyzed"] == 5
        assert final["questions_failed"] == 0
        assert final["warnings"] == []
        assert final["error_message"] is None

    @pytest.mark.asyncio
    async def test_total_is_mean_of_question_scores(self, store, company_repository, seeded_company, fake_engine):
        run_id = store.create_run(seeded_company)

        await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        results = store.get_run_results(run_id)
        scores = [q["analysis"]["question_score"] for q in results["questions"]]
        assert results["total_score"] == pytest.approx(sum(scores) / len(scores), abs=0.01)
        assert results["mention_rate"] == 1.0
        assert results["citation_stats"]["by_bucket"]["owned"] == 5
        assert results["citation_stats"]["by_bucket"]["competitor"] == 5

    @pytest.mark.asyncio
    async def test_competitor_snapshots_stored(self, store, company_repository, seeded_company, fake_engine):
        run_id = store.create_run(seeded_company)

        await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        results = store.get_run_results(run_id)
        by_name = {c["name"]: c for c in results["competitors"]}
        assert set(by_name) == {"Riva", "Nimbus"}
        assert by_name["Riva"]["citation_count"] == 5
        assert by_name["Riva"]["rank"] < by_name["Nimbus"]["rank"]
        assert results["score_breakdown"]["target_rank"] == 1

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, session_factory, company_repository, seeded_company, fake_engine):
        store = ProgressRecordingStore(session_factory)
        run_id = store.create_run(seeded_company)

        await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        history = store.progress_history
        assert history == sorted(history)
        assert max(history) < 100
        assert store.get_run(run_id)["progress_percentage"] == 100

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_when_results_arrive_out_of_order(
        self, session_factory, company_repository, seeded_company
    ):
        texts = _question_texts(company_repository, seeded_company)
        engine = ReverseOrderEngine(texts)
        store = ProgressRecordingStore(session_factory)
        run_id = store.create_run(seeded_company)

        orchestrator = _orchestrator(engine, store, company_repository, max_concurrent_questions=5)
        final = await orchestrator.run(run_id, seeded_company)

        assert engine.finished == list(reversed(texts))
        history = store.progress_history
        assert history == sorted(history)
        assert max(history) < 100
        assert final["progress_percentage"] == 100
        assert final["questions_analyzed"] == 5

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, store, company_repository, seeded_company):
        engine = FakeAnswerEngine()
        engine.fail_when = lambda text: engine.calls[text] == 1
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "completed"
        assert final["questions_failed"] == 0
        assert all(count == 2 for count in engine.calls.values())
        attempts = [q["attempts"] for q in store.get_run_results(run_id)["questions"]]
        assert attempts == [2] * 5


class TestPartialFailure:

    @pytest.mark.asyncio
    async def test_failed_questions_excluded_from_scoring(self, store, company_repository, seeded_company):
        texts = _question_texts(company_repository, seeded_company)
        failing = {texts[1], texts[3]}
        engine = FakeAnswerEngine(fail_when=lambda text: text in failing)
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "completed"
        assert final["questions_analyzed"] == 3
        assert final["questions_failed"] == 2
        assert final["warnings"] == ["3 of 5 questions analyzed; 2 answer-engine queries failed"]

        results = store.get_run_results(run_id)
        statuses = [q["status"] for q in results["questions"]]
        assert statuses == ["answered", "failed", "answered", "failed", "answered"]
        analyzed_scores = [q["analysis"]["question_score"] for q in results["questions"] if q["analysis"]]
        assert results["total_score"] == pytest.approx(sum(analyzed_scores) / 3, abs=0.01)
        # Each failing question used every attempt
        assert all(engine.calls[text] == 3 for text in failing)

    @pytest.mark.asyncio
    async def test_permanent_errors_not_retried(self, store, company_repository, seeded_company):
        texts = _question_texts(company_repository, seeded_company)
        engine = FakeAnswerEngine(fail_when=lambda text: text == texts[0], retryable=False)
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "completed"
        assert engine.calls[texts[0]] == 1

    @pytest.mark.asyncio
    async def test_timeouts_count_as_failures(self, store, company_repository, seeded_company):
        engine = SlowEngine()
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(
            engine, store, company_repository,
            count=2, question_timeout=0.01, retry_policy=RetryPolicy(max_attempts=1, initial_delay=0),
        ).run(run_id, seeded_company)

        assert final["status"] == "failed"
        assert final["questions_failed"] == 2
        assert "All 2 answer-engine queries failed" in final["error_message"]


class TestFailedRuns:

    @pytest.mark.asyncio
    async def test_connectivity_failure_stores_nothing(self, store, company_repository, seeded_company):
        engine = FakeAnswerEngine(connectivity=False)
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "failed"
        assert "authentication failed" in final["error_message"]
        assert engine.calls == {}
        stats = store.get_run_stats(run_id)
        assert stats["questions"] == 0
        assert stats["analyses"] == 0

    @pytest.mark.asyncio
    async def test_all_questions_failing_fails_run(self, store, company_repository, seeded_company):
        engine = FakeAnswerEngine(fail_when=lambda text: True)
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(engine, store, company_repository, count=3).run(run_id, seeded_company)

        assert final["status"] == "failed"
        assert final["total_score"] is None
        assert final["questions_failed"] == 3
        assert final["progress_percentage"] < 100

    @pytest.mark.asyncio
    async def test_context_error_fails_run(self, store, company_repository, seeded_company, fake_engine):
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(fake_engine, store, company_repository).run(run_id, uuid4())

        assert final["status"] == "failed"
        assert "not found" in final["error_message"]
        assert fake_engine.calls == {}

    @pytest.mark.asyncio
    async def test_persistence_error_fails_run(self, session_factory, company_repository, seeded_company, fake_engine):
        store = BrokenWritesStore(session_factory)
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "failed"
        assert "disk full" in final["error_message"]
        assert store.get_run_stats(run_id)["analyses"] == 0

    @pytest.mark.asyncio
    async def test_terminal_run_is_left_alone(self, store, company_repository, seeded_company, fake_engine):
        run_id = store.create_run(seeded_company)
        store.fail_run(run_id, "cancelled by operator")

        final = await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "failed"
        assert final["error_message"] == "cancelled by operator"

    @pytest.mark.asyncio
    async def test_self_test_raising_fails_run(self, store, company_repository, seeded_company, fake_engine):
        fake_engine.test_connectivity = AsyncMock(side_effect=AnswerEngineError("Request failed: DNS", retryable=True))
        run_id = store.create_run(seeded_company)

        final = await _orchestrator(fake_engine, store, company_repository).run(run_id, seeded_company)

        assert final["status"] == "failed"
        assert "Request failed: DNS" in final["error_message"]
        fake_engine.test_connectivity.assert_awaited_once()
        assert store.get_run_stats(run_id)["questions"] == 0
