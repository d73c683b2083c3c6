"""
Assessment Orchestrator

Drives one assessment run through its state machine:

    pending -> running -> completed
        \         \
         +---------+--> failed

Stages:
1. Connectivity self-test (failure: pending -> failed, no questions stored)
2. Mark running, build company context
3. Generate and store questions
4. Ask, analyze and store each question under bounded concurrency
5. Aggregate and finalize

Per-question failures (retries exhausted, timeouts) are recorded and the run
continues on the remaining sample. Context, persistence and total answer
failures end the run as failed; analyses already stored are kept.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from ..analysis.aggregate import aggregate_run
from ..analysis.analyzer import ResponseAnalyzer
from ..analysis.models import QuestionAnalysis
from ..context.builder import ContextBuildError, KnowledgeContextBuilder
from ..context.models import CompanyContext
from ..database.models import ProgressStage
from ..database.repository import RunStateError, RunStore
from ..integrations.base import AnswerEngine, AnswerEngineError
from ..integrations.retry import RetryPolicy
from ..questions.generator import GeneratedQuestion, QuestionGenerator
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Progress milestones (percent)
PROGRESS_SETUP = 5
PROGRESS_QUESTIONS = 10
PROGRESS_QUERY_SPAN = 85  # 10 -> 95 while questions complete
PROGRESS_AGGREGATE = 95


@dataclass(frozen=True)
class PipelineConfig:
    """Run configuration, fixed for the lifetime of a run."""

    question_count: int = 10
    allowed_types: Optional[Tuple[str, ...]] = None
    max_concurrent_questions: int = 3
    question_timeout: float = 90.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self):
        if self.max_concurrent_questions < 1:
            raise ValueError("max_concurrent_questions must be at least 1")
        if self.question_timeout <= 0:
            raise ValueError("question_timeout must be positive")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "PipelineConfig":
        settings = settings or get_settings()
        values = {
            "question_count": settings.DEFAULT_QUESTION_COUNT,
            "max_concurrent_questions": settings.MAX_CONCURRENT_QUESTIONS,
            "question_timeout": settings.QUESTION_TIMEOUT,
            "retry_policy": RetryPolicy(
                max_attempts=settings.RETRY_MAX_ATTEMPTS,
                initial_delay=settings.RETRY_INITIAL_DELAY,
                max_delay=settings.RETRY_MAX_DELAY,
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        if values.get("allowed_types") is not None:
            values["allowed_types"] = tuple(values["allowed_types"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_count": self.question_count,
            "allowed_types": list(self.allowed_types) if self.allowed_types else None,
            "max_concurrent_questions": self.max_concurrent_questions,
            "question_timeout": self.question_timeout,
            "retry_max_attempts": self.retry_policy.max_attempts,
        }


class AssessmentOrchestrator:
    """
    Runs assessments end to end.

    Usage:
        orchestrator = AssessmentOrchestrator(engine, store, builder, config)
        status = await orchestrator.run(run_id, company_id)
    """

    def __init__(
        self,
        engine: AnswerEngine,
        store: RunStore,
        context_builder: KnowledgeContextBuilder,
        config: Optional[PipelineConfig] = None,
        generator: Optional[QuestionGenerator] = None,
        analyzer: Optional[ResponseAnalyzer] = None,
    ):
        self.engine = engine
        self.store = store
        self.context_builder = context_builder
        self.config = config or PipelineConfig()
        self.generator = generator or QuestionGenerator()
        self.analyzer = analyzer or ResponseAnalyzer()

    async def run(self, run_id: UUID, company_id: UUID) -> Dict[str, Any]:
        """
        Execute a pending run to a terminal state.

        Returns:
            Final run status as stored

        Raises:
            PersistenceError: If even the failure could not be recorded
        """
        logger.info(f"Starting assessment run {run_id} for company {company_id}")

        connectivity = await self._check_connectivity()
        if not connectivity[0]:
            self._fail(run_id, f"Answer engine connectivity check failed: {connectivity[1]}")
            return self.store.get_run(run_id)

        try:
            await self._execute(run_id, company_id)
        except Exception as e:
            logger.exception(f"Assessment run {run_id} failed")
            self._fail(run_id, self._describe(e))

        return self.store.get_run(run_id)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _check_connectivity(self) -> Tuple[bool, str]:
        try:
            result = await self.engine.test_connectivity()
        except AnswerEngineError as e:
            return False, str(e)
        if result.success:
            return True, ""
        return False, "; ".join(result.errors) or "unknown error"

    async def _execute(self, run_id: UUID, company_id: UUID) -> None:
        self.store.mark_running(run_id, "Building company context")

        context = self.context_builder.build_context(company_id)
        self.store.update_progress(
            run_id, PROGRESS_SETUP, ProgressStage.SETUP,
            f"Context ready ({len(context.competitors)} competitors)",
        )

        questions = list(self.generator.generate(
            context, self.config.question_count, self.config.allowed_types
        ))
        if not questions:
            raise ValueError("No questions could be generated for this company")

        question_ids = self.store.add_questions(run_id, questions)
        self.store.update_progress(
            run_id, PROGRESS_QUESTIONS, ProgressStage.QUESTIONS,
            f"Generated {len(questions)} questions",
        )

        analyzed, failures = await self._process_questions(run_id, context, questions, question_ids)

        if not analyzed:
            last = failures[-1] if failures else "no answers"
            raise AnswerEngineError(f"All {len(questions)} answer-engine queries failed (last error: {last})")

        self.store.update_progress(
            run_id, PROGRESS_AGGREGATE, ProgressStage.ANALYZING, "Aggregating results"
        )
        result = aggregate_run(
            context,
            analyzed,
            questions_total=len(questions),
            questions_failed=len(failures),
        )
        self.store.finalize_run(run_id, result)

        logger.info(
            f"Assessment run {run_id} complete: score={result.total_score}, "
            f"{result.questions_analyzed}/{result.questions_total} questions analyzed"
        )

    async def _process_questions(
        self,
        run_id: UUID,
        context: CompanyContext,
        questions: List[GeneratedQuestion],
        question_ids: Dict[int, UUID],
    ) -> Tuple[List[Tuple[str, QuestionAnalysis]], List[str]]:
        """Ask and analyze every question; returns (analyzed pairs, failure reasons)."""
        semaphore = asyncio.Semaphore(self.config.max_concurrent_questions)
        progress_lock = asyncio.Lock()
        total = len(questions)
        completed = 0
        analyzed: List[Tuple[Tuple[int, str], QuestionAnalysis]] = []
        failures: List[str] = []

        async def process(question: GeneratedQuestion) -> None:
            nonlocal completed
            question_id = question_ids[question.sequence]
            label = f"Question {question.sequence}/{total}"

            async with semaphore:
                try:
                    answer, attempts = await self.config.retry_policy.call(
                        lambda: self.engine.ask(question.text),
                        timeout=self.config.question_timeout,
                        label=label,
                    )
                    analysis = self.analyzer.analyze(answer, context, question.text)
                    error = None
                except AnswerEngineError as e:
                    answer, analysis, error = None, None, e
                    attempts = e.attempts or 1

            async with progress_lock:
                completed += 1
                percentage = PROGRESS_QUESTIONS + int(PROGRESS_QUERY_SPAN * completed / total)
                message = f"Processed {completed} of {total} questions"

                if error is None:
                    self.store.record_analysis(
                        run_id, question_id, analysis,
                        model=answer.model,
                        tokens_used=answer.tokens_used,
                        attempts=attempts,
                        progress=percentage,
                        stage=ProgressStage.QUERYING,
                        message=message,
                    )
                    analyzed.append(((question.sequence, question.question_type.value), analysis))
                else:
                    self.store.record_question_failure(
                        run_id, question_id, str(error),
                        attempts=attempts,
                        progress=percentage,
                        stage=ProgressStage.QUERYING,
                        message=message,
                    )
                    failures.append(str(error))

        self.store.update_progress(
            run_id, PROGRESS_QUESTIONS, ProgressStage.QUERYING,
            f"Querying answer engine ({total} questions)",
        )

        tasks = [asyncio.create_task(process(q)) for q in questions]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        analyzed.sort(key=lambda pair: pair[0][0])
        return [(key[1], analysis) for key, analysis in analyzed], failures

    # -------------------------------------------------------------------------
    # Failure handling
    # -------------------------------------------------------------------------

    @staticmethod
    def _describe(error: Exception) -> str:
        if isinstance(error, ContextBuildError):
            return str(error)
        if isinstance(error, AnswerEngineError):
            return error.message
        return f"{type(error).__name__}: {error}"

    def _fail(self, run_id: UUID, message: str) -> None:
        try:
            self.store.fail_run(run_id, message)
        except RunStateError as e:
            logger.warning(f"Could not mark run {run_id} as failed: {e}")
        except Exception:
            logger.exception(f"Failed to record failure of run {run_id}")
            raise
