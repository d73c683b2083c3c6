"""
Assessment Service

Entry points used by the API (and scripts):
1. start_assessment - register the company and a pending run
2. run_assessment   - execute a run to completion (background task)
3. get_status       - cheap status poll, committed state only
4. get_results      - full results bundle
5. get_trends       - score and mention-rate trend across completed runs
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from ..context.builder import KnowledgeContextBuilder
from ..analysis.trends import compute_trends
from ..database.repository import CompanyNotFoundError, CompanyRepository, RunStore
from ..integrations.base import AnswerEngine, ConnectivityResult
from ..integrations.config import AnswerEngineConfig, create_answer_engine
from ..pipeline.orchestrator import AssessmentOrchestrator, PipelineConfig
from ..questions.templates import QuestionType
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class CompanyInput:
    """Company to assess; created on first use, matched by id or domain afterwards."""
    name: str
    domain: str
    company_id: Optional[UUID] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    owned_domains: List[str] = field(default_factory=list)
    operated_domains: List[str] = field(default_factory=list)


@dataclass
class AssessmentOptions:
    question_count: Optional[int] = None
    allowed_types: Optional[List[str]] = None


class AssessmentService:
    """Service for AI visibility assessments."""

    def __init__(
        self,
        store: Optional[RunStore] = None,
        context_builder: Optional[KnowledgeContextBuilder] = None,
        engine_factory: Optional[Callable[[], Optional[AnswerEngine]]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize assessment service.

        Args:
            store: Run store (defaults to the global database)
            context_builder: Context builder (defaults to one over the same database)
            engine_factory: Creates an answer engine per run (defaults to Perplexity from settings)
            settings: Application settings
        """
        self.settings = settings or get_settings()
        self.store = store or RunStore()
        self.companies = CompanyRepository(self.store.session_factory)
        self.context_builder = context_builder or KnowledgeContextBuilder(self.companies)
        if engine_factory is not None:
            self.engine_factory = engine_factory
            self.engine_configured = True
        else:
            engine_config = AnswerEngineConfig.from_settings(self.settings)
            self.engine_factory = lambda: create_answer_engine(engine_config)
            self.engine_configured = engine_config.is_configured

    def validate_options(self, options: Optional[AssessmentOptions]) -> Dict[str, Any]:
        """
        Resolve options into the run config stored with the run.

        Raises:
            ValueError: Question count out of range or unknown question type
        """
        options = options or AssessmentOptions()

        count = options.question_count
        if count is None:
            count = self.settings.DEFAULT_QUESTION_COUNT
        if count < 1 or count > self.settings.MAX_QUESTION_COUNT:
            raise ValueError(f"question_count must be between 1 and {self.settings.MAX_QUESTION_COUNT}")

        allowed_types = None
        if options.allowed_types:
            try:
                allowed_types = [QuestionType(t).value for t in options.allowed_types]
            except ValueError as e:
                raise ValueError(f"Unknown question type in {options.allowed_types}") from e

        return {"question_count": count, "allowed_types": allowed_types}

    def start_assessment(self, company: CompanyInput, options: Optional[AssessmentOptions] = None) -> UUID:
        """
        Register a pending run for a company.

        Returns:
            UUID of the new run
        """
        config = self.validate_options(options)

        company_id = self.store.ensure_company(
            name=company.name,
            domain=company.domain,
            company_id=company.company_id,
            industry=company.industry,
            description=company.description,
            aliases=company.aliases,
            owned_domains=company.owned_domains,
            operated_domains=company.operated_domains,
        )
        run_id = self.store.create_run(company_id, config=config)

        logger.info(f"Assessment {run_id} queued for {company.domain} ({config['question_count']} questions)")
        return run_id

    async def run_assessment(self, run_id: UUID) -> Dict[str, Any]:
        """
        Execute a pending run and return its results bundle.

        An unconfigured answer engine fails the run immediately.
        """
        run = self.store.get_run(run_id)
        config = run.get("config") or {}
        pipeline_config = PipelineConfig.from_settings(
            self.settings,
            question_count=config.get("question_count"),
            allowed_types=config.get("allowed_types"),
        )

        engine = self.engine_factory()
        if engine is None:
            self.store.fail_run(run_id, "Answer engine is not configured (missing PERPLEXITY_API_KEY)")
            return self.store.get_run_results(run_id)

        try:
            orchestrator = AssessmentOrchestrator(
                engine=engine,
                store=self.store,
                context_builder=self.context_builder,
                config=pipeline_config,
            )
            await orchestrator.run(run_id, UUID(run["company_id"]))
        finally:
            await engine.close()

        return self.store.get_run_results(run_id)

    async def assess(self, company: CompanyInput, options: Optional[AssessmentOptions] = None) -> Dict[str, Any]:
        """Start and run an assessment in one call."""
        run_id = self.start_assessment(company, options)
        return await self.run_assessment(run_id)

    def get_status(self, run_id: UUID) -> Dict[str, Any]:
        """Status poll: never touches a running pipeline, reads committed state only."""
        run = self.store.get_run(run_id)
        status = {
            "run_id": run["run_id"],
            "status": run["status"],
            "progress_percentage": run["progress_percentage"],
            "progress_stage": run["progress_stage"],
            "progress_message": run["progress_message"],
            "error_message": run["error_message"] if run["status"] == "failed" else None,
            "results_url": None,
            "total_score": None,
        }
        if run["status"] == "completed":
            status["results_url"] = f"/api/assessments/{run['run_id']}"
            status["total_score"] = run["total_score"]
        return status

    def get_results(self, run_id: UUID) -> Dict[str, Any]:
        return self.store.get_run_results(run_id)

    def list_company_runs(self, company_id: UUID, limit: int = 20) -> List[Dict[str, Any]]:
        return self.store.list_company_runs(company_id, limit=limit)

    def get_trends(self, company_id: UUID, limit: int = 20) -> Dict[str, Any]:
        """
        Trend over the company's most recent runs.

        Raises:
            CompanyNotFoundError: Unknown company
        """
        company = self.companies.get_company(company_id)
        if company is None:
            raise CompanyNotFoundError(company_id)

        trends = compute_trends(self.store.list_company_runs(company_id, limit=limit))
        trends.update({"company_id": str(company_id), "company_name": company.name})
        return trends

    async def test_connectivity(self) -> Optional[ConnectivityResult]:
        """Run the answer engine self-test; None when no engine is configured."""
        engine = self.engine_factory()
        if engine is None:
            return None
        try:
            return await engine.test_connectivity()
        finally:
            await engine.close()
