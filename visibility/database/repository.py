"""
Repository Layer - Clean Interface for Data Operations

Provides simple methods to store and retrieve assessment data.
Handles all SQLAlchemy complexity internally.

Rules enforced here:
- Terminal runs (completed/failed) are immutable
- Stored progress never decreases and only reaches 100 on completion
- Every write is one transaction; database errors surface as PersistenceError
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Generator, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..utils.domain_filter import normalize_domain
from .models import (
    AssessmentQuestion,
    AssessmentRun,
    CitationRecord,
    Company,
    CompetitorSnapshot,
    KnowledgeBaseItem,
    ProgressStage,
    QuestionAnalysisRecord,
    QuestionStatus,
    RunStatus,
)
from .session import get_db_context

if TYPE_CHECKING:
    from ..analysis.aggregate import RunAggregate
    from ..analysis.models import QuestionAnalysis

logger = logging.getLogger(__name__)

# Highest progress a non-completed run may show
MAX_IN_FLIGHT_PROGRESS = 99


# =============================================================================
# ERRORS
# =============================================================================

class PersistenceError(Exception):
    """A database read or write failed."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class RunStateError(Exception):
    """Illegal transition or mutation of a run (e.g. writing to a terminal run)."""


class RunNotFoundError(LookupError):
    """No run exists with the requested id."""

    def __init__(self, run_id: UUID):
        super().__init__(f"Assessment run {run_id} not found")
        self.run_id = run_id


class CompanyNotFoundError(LookupError):
    """No company exists with the requested id."""

    def __init__(self, company_id: UUID):
        super().__init__(f"Company {company_id} not found")
        self.company_id = company_id


def _merge_names(existing: Iterable[str], extra: Iterable[str], exclude: Optional[str] = None) -> List[str]:
    """Union of name lists, case-insensitive, first spelling and order kept."""
    seen = {exclude.strip().lower()} if exclude else set()
    merged = []
    for value in [*existing, *extra]:
        value = (value or "").strip()
        if value and value.lower() not in seen:
            seen.add(value.lower())
            merged.append(value)
    return merged


def _merge_domains(existing: Iterable[str], extra: Iterable[str]) -> List[str]:
    merged = []
    for value in [*existing, *extra]:
        domain = normalize_domain(value)
        if domain and domain not in merged:
            merged.append(domain)
    return merged


@contextmanager
def _transaction(session_factory: Optional[sessionmaker], operation: str) -> Generator[Session, None, None]:
    try:
        with get_db_context(session_factory) as db:
            yield db
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise PersistenceError(f"Database error during {operation}: {e}", operation=operation) from e


# =============================================================================
# COMPANIES & KNOWLEDGE BASE
# =============================================================================

class CompanyRepository:
    """Read access to companies and their knowledge base."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    def get_company(self, company_id: UUID) -> Optional[Company]:
        with _transaction(self._session_factory, "get_company") as db:
            return db.get(Company, company_id)

    def list_knowledge_items(self, company_id: UUID) -> List[KnowledgeBaseItem]:
        with _transaction(self._session_factory, "list_knowledge_items") as db:
            return (
                db.query(KnowledgeBaseItem)
                .filter(KnowledgeBaseItem.company_id == company_id)
                .order_by(KnowledgeBaseItem.created_at, KnowledgeBaseItem.id)
                .all()
            )

    def add_knowledge_item(
        self,
        company_id: UUID,
        tag: str,
        content: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UUID:
        with _transaction(self._session_factory, "add_knowledge_item") as db:
            item = KnowledgeBaseItem(
                company_id=company_id,
                tag=tag,
                content=content or "",
                item_metadata=metadata or {},
            )
            db.add(item)
            db.flush()
            return item.id


# =============================================================================
# RUN STORE
# =============================================================================

class RunStore:
    """
    Persistence for assessment runs.

    Usage:
        store = RunStore()
        company_id = store.ensure_company("Acme Corp", "acme.dev")
        run_id = store.create_run(company_id, config={"question_count": 10})
        store.mark_running(run_id)
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Optional[sessionmaker]:
        return self._session_factory

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _load_run(db: Session, run_id: UUID) -> AssessmentRun:
        run = db.get(AssessmentRun, run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def _load_mutable_run(self, db: Session, run_id: UUID) -> AssessmentRun:
        run = self._load_run(db, run_id)
        if run.status.is_terminal:
            raise RunStateError(f"Run {run_id} is {run.status.value} and can no longer change")
        return run

    @staticmethod
    def _apply_progress(
        run: AssessmentRun,
        percentage: Optional[int],
        stage: Optional[ProgressStage],
        message: Optional[str],
    ) -> None:
        if percentage is not None:
            percentage = max(0, min(MAX_IN_FLIGHT_PROGRESS, int(percentage)))
            run.progress_percentage = max(run.progress_percentage or 0, percentage)
        if stage is not None:
            run.progress_stage = stage
        if message is not None:
            run.progress_message = message[:500]

    @staticmethod
    def _load_question(db: Session, run_id: UUID, question_id: UUID) -> AssessmentQuestion:
        question = db.get(AssessmentQuestion, question_id)
        if question is None or question.run_id != run_id:
            raise RunStateError(f"Question {question_id} does not belong to run {run_id}")
        if question.status != QuestionStatus.PENDING:
            raise RunStateError(f"Question {question_id} is already {question.status.value}")
        return question

    # -------------------------------------------------------------------------
    # Companies
    # -------------------------------------------------------------------------

    def ensure_company(
        self,
        name: str,
        domain: str,
        company_id: Optional[UUID] = None,
        industry: Optional[str] = None,
        description: Optional[str] = None,
        aliases: Optional[List[str]] = None,
        owned_domains: Optional[List[str]] = None,
        operated_domains: Optional[List[str]] = None,
    ) -> UUID:
        """
        Find a company by id (or domain) or create it.

        The domain is normalized before lookup, so "https://www.acme.dev/"
        finds the company stored as "acme.dev". An existing company keeps its
        name; aliases and domains from the request are merged into its record,
        and a differing name becomes an alias.

        Returns:
            UUID of the existing or created company
        """
        domain = normalize_domain(domain) or (domain or "").strip().lower()

        with _transaction(self._session_factory, "ensure_company") as db:
            company = None
            if company_id is not None:
                company = db.get(Company, company_id)
            if company is None:
                company = db.query(Company).filter(Company.domain == domain).first()

            if company is None:
                company = Company(
                    name=name,
                    domain=domain,
                    industry=industry,
                    description=description,
                    aliases=_merge_names([], aliases or [], exclude=name),
                    owned_domains=_merge_domains([], owned_domains or []),
                    operated_domains=_merge_domains([], operated_domains or []),
                )
                if company_id is not None:
                    company.id = company_id
                db.add(company)
                db.flush()
                logger.info(f"Created company {company.id} for {domain}")
                return company.id

            extra_names = list(aliases or [])
            if name and name.strip().lower() != (company.name or "").strip().lower():
                extra_names.insert(0, name)
            company.aliases = _merge_names(company.aliases or [], extra_names, exclude=company.name)
            company.owned_domains = _merge_domains(company.owned_domains or [], owned_domains or [])
            company.operated_domains = _merge_domains(company.operated_domains or [], operated_domains or [])
            if industry:
                company.industry = industry
            if description:
                company.description = description

            logger.info(f"Using existing company {company.id} for {domain}")
            return company.id

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def create_run(self, company_id: UUID, config: Optional[Dict[str, Any]] = None) -> UUID:
        """
        Create a new pending run.

        This is the entry point for every assessment.

        Returns:
            UUID of the created run
        """
        with _transaction(self._session_factory, "create_run") as db:
            run = AssessmentRun(
                company_id=company_id,
                status=RunStatus.PENDING,
                progress_percentage=0,
                progress_stage=ProgressStage.SETUP,
                progress_message="Queued",
                config=config or {},
                warnings=[],
            )
            db.add(run)
            db.flush()

            logger.info(f"Created assessment run {run.id} for company {company_id}")
            return run.id

    def mark_running(self, run_id: UUID, message: str = "Starting assessment") -> None:
        """Transition pending -> running."""
        with _transaction(self._session_factory, "mark_running") as db:
            run = self._load_mutable_run(db, run_id)
            if run.status != RunStatus.PENDING:
                raise RunStateError(f"Run {run_id} is {run.status.value}, expected pending")

            run.status = RunStatus.RUNNING
            run.started_at = datetime.utcnow()
            self._apply_progress(run, None, ProgressStage.SETUP, message)

    def add_questions(self, run_id: UUID, questions: Iterable[Any]) -> Dict[int, UUID]:
        """
        Store generated questions in one batch.

        Args:
            run_id: Run to attach the questions to
            questions: Objects with sequence, question_type, text, template_id

        Returns:
            Mapping of question sequence -> stored question id
        """
        with _transaction(self._session_factory, "add_questions") as db:
            run = self._load_mutable_run(db, run_id)

            records = []
            for question in questions:
                question_type = getattr(question.question_type, "value", question.question_type)
                record = AssessmentQuestion(
                    run_id=run_id,
                    sequence=question.sequence,
                    question_type=question_type,
                    template_id=question.template_id,
                    text=question.text,
                    status=QuestionStatus.PENDING,
                    attempts=0,
                )
                db.add(record)
                records.append(record)

            db.flush()
            run.questions_total = (run.questions_total or 0) + len(records)

            logger.info(f"Stored {len(records)} questions for run {run_id}")
            return {r.sequence: r.id for r in records}

    def update_progress(
        self,
        run_id: UUID,
        percentage: Optional[int] = None,
        stage: Optional[ProgressStage] = None,
        message: Optional[str] = None,
    ) -> None:
        """Update progress fields; percentage is clamped below 100 and never decreases."""
        with _transaction(self._session_factory, "update_progress") as db:
            run = self._load_mutable_run(db, run_id)
            self._apply_progress(run, percentage, stage, message)

    def record_analysis(
        self,
        run_id: UUID,
        question_id: UUID,
        analysis: "QuestionAnalysis",
        model: str = "",
        tokens_used: int = 0,
        attempts: int = 1,
        progress: Optional[int] = None,
        stage: Optional[ProgressStage] = None,
        message: Optional[str] = None,
    ) -> UUID:
        """
        Store one analyzed answer with its citations and the run's progress.

        All in one transaction: either the analysis and the progress update
        are both visible to status reads, or neither is.

        Returns:
            UUID of the stored analysis
        """
        with _transaction(self._session_factory, "record_analysis") as db:
            run = self._load_mutable_run(db, run_id)
            question = self._load_question(db, run_id, question_id)

            record = QuestionAnalysisRecord(
                question_id=question_id,
                run_id=run_id,
                answer_text=analysis.answer_text,
                model=model or None,
                tokens_used=tokens_used or 0,
                mention_detected=analysis.mention.detected,
                mention_count=analysis.mention.count,
                first_mention_position=analysis.mention.first_position,
                question_score=analysis.question_score,
            )
            for citation in analysis.citations:
                record.citations.append(CitationRecord(
                    position=citation.position,
                    url=citation.url[:2000],
                    domain=citation.domain,
                    bucket=citation.bucket.value,
                    influence_score=citation.influence_score,
                    relevance_score=citation.relevance_score,
                    competitor_name=citation.competitor_name,
                ))
            db.add(record)

            question.status = QuestionStatus.ANSWERED
            question.attempts = attempts
            run.questions_analyzed = (run.questions_analyzed or 0) + 1
            self._apply_progress(run, progress, stage, message)

            db.flush()
            return record.id

    def record_question_failure(
        self,
        run_id: UUID,
        question_id: UUID,
        reason: str,
        attempts: int = 0,
        progress: Optional[int] = None,
        stage: Optional[ProgressStage] = None,
        message: Optional[str] = None,
    ) -> None:
        """Mark a question as failed (excluded from scoring) and update progress."""
        with _transaction(self._session_factory, "record_question_failure") as db:
            run = self._load_mutable_run(db, run_id)
            question = self._load_question(db, run_id, question_id)

            question.status = QuestionStatus.FAILED
            question.failure_reason = reason
            question.attempts = attempts
            run.questions_failed = (run.questions_failed or 0) + 1
            self._apply_progress(run, progress, stage, message)

            logger.warning(f"Question {question.sequence} of run {run_id} failed: {reason}")

    def finalize_run(self, run_id: UUID, result: "RunAggregate") -> None:
        """
        Mark run as completed and store aggregates and competitor snapshots.

        Only a running run can complete.
        """
        with _transaction(self._session_factory, "finalize_run") as db:
            run = self._load_mutable_run(db, run_id)
            if run.status != RunStatus.RUNNING:
                raise RunStateError(f"Run {run_id} is {run.status.value}, expected running")

            now = datetime.utcnow()
            run.status = RunStatus.COMPLETED
            run.progress_percentage = 100
            run.progress_stage = ProgressStage.COMPLETE
            run.progress_message = "Assessment complete"
            run.total_score = result.total_score
            run.mention_rate = result.mention_rate
            run.consistency_score = result.consistency_score
            run.citation_stats = result.citation_stats
            run.score_breakdown = result.score_breakdown
            run.context_richness = result.context_richness
            run.questions_total = result.questions_total
            run.questions_analyzed = result.questions_analyzed
            run.questions_failed = result.questions_failed
            run.warnings = list(result.warnings)
            run.completed_at = now
            if run.started_at:
                run.duration_seconds = int((now - run.started_at).total_seconds())

            for competitor in result.competitors:
                run.competitor_snapshots.append(CompetitorSnapshot(
                    name=competitor.name,
                    domain=competitor.domain,
                    mention_count=competitor.mention_count,
                    citation_count=competitor.citation_count,
                    visibility_score=competitor.visibility_score,
                    rank=competitor.rank,
                ))

            logger.info(f"Completed run {run_id}: score={result.total_score}")

    def fail_run(
        self,
        run_id: UUID,
        error_message: str,
        warnings: Optional[List[str]] = None,
    ) -> None:
        """Mark run as failed. Stored analyses are kept."""
        with _transaction(self._session_factory, "fail_run") as db:
            run = self._load_mutable_run(db, run_id)

            now = datetime.utcnow()
            run.status = RunStatus.FAILED
            run.progress_stage = ProgressStage.ERROR
            run.progress_message = "Assessment failed"
            run.error_message = error_message or "Unknown error"
            run.completed_at = now
            if warnings:
                run.warnings = list(run.warnings or []) + list(warnings)
            if run.started_at:
                run.duration_seconds = int((now - run.started_at).total_seconds())

            logger.error(f"Run {run_id} failed: {run.error_message}")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_run(self, run_id: UUID) -> Dict[str, Any]:
        """Committed status of a run."""
        with _transaction(self._session_factory, "get_run") as db:
            return _run_to_dict(self._load_run(db, run_id))

    def get_run_results(self, run_id: UUID) -> Dict[str, Any]:
        """Full results bundle: run, questions with analyses, competitor snapshots."""
        with _transaction(self._session_factory, "get_run_results") as db:
            run = self._load_run(db, run_id)
            data = _run_to_dict(run)
            data["questions"] = [_question_to_dict(q) for q in run.questions]
            data["competitors"] = [_snapshot_to_dict(s) for s in run.competitor_snapshots]
            return data

    def list_company_runs(self, company_id: UUID, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent runs for a company, newest first."""
        with _transaction(self._session_factory, "list_company_runs") as db:
            runs = (
                db.query(AssessmentRun)
                .filter(AssessmentRun.company_id == company_id)
                .order_by(AssessmentRun.created_at.desc())
                .limit(limit)
                .all()
            )
            return [_run_to_dict(r) for r in runs]

    def get_run_stats(self, run_id: UUID) -> Dict[str, int]:
        """Row counts for a run (useful for debugging)."""
        with _transaction(self._session_factory, "get_run_stats") as db:
            self._load_run(db, run_id)
            return {
                "questions": db.query(AssessmentQuestion).filter(AssessmentQuestion.run_id == run_id).count(),
                "analyses": db.query(QuestionAnalysisRecord).filter(QuestionAnalysisRecord.run_id == run_id).count(),
                "citations": (
                    db.query(CitationRecord)
                    .join(QuestionAnalysisRecord, CitationRecord.analysis_id == QuestionAnalysisRecord.id)
                    .filter(QuestionAnalysisRecord.run_id == run_id)
                    .count()
                ),
                "competitor_snapshots": db.query(CompetitorSnapshot).filter(CompetitorSnapshot.run_id == run_id).count(),
            }


# =============================================================================
# SERIALIZATION
# =============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _run_to_dict(run: AssessmentRun) -> Dict[str, Any]:
    return {
        "run_id": str(run.id),
        "company_id": str(run.company_id),
        "status": run.status.value,
        "progress_percentage": run.progress_percentage,
        "progress_stage": run.progress_stage.value if run.progress_stage else None,
        "progress_message": run.progress_message,
        "total_score": run.total_score,
        "mention_rate": run.mention_rate,
        "consistency_score": run.consistency_score,
        "citation_stats": run.citation_stats,
        "score_breakdown": run.score_breakdown,
        "context_richness": run.context_richness,
        "questions_total": run.questions_total or 0,
        "questions_analyzed": run.questions_analyzed or 0,
        "questions_failed": run.questions_failed or 0,
        "warnings": list(run.warnings or []),
        "config": run.config or {},
        "error_message": run.error_message,
        "started_at": _iso(run.started_at),
        "completed_at": _iso(run.completed_at),
        "duration_seconds": run.duration_seconds,
        "created_at": _iso(run.created_at),
    }


def _question_to_dict(question: AssessmentQuestion) -> Dict[str, Any]:
    analysis = question.analysis
    return {
        "question_id": str(question.id),
        "sequence": question.sequence,
        "question_type": question.question_type,
        "template_id": question.template_id,
        "text": question.text,
        "status": question.status.value,
        "attempts": question.attempts,
        "failure_reason": question.failure_reason,
        "analysis": _analysis_to_dict(analysis) if analysis else None,
    }


def _analysis_to_dict(analysis: QuestionAnalysisRecord) -> Dict[str, Any]:
    return {
        "answer_text": analysis.answer_text,
        "model": analysis.model,
        "tokens_used": analysis.tokens_used,
        "mention_detected": analysis.mention_detected,
        "mention_count": analysis.mention_count,
        "first_mention_position": analysis.first_mention_position,
        "question_score": analysis.question_score,
        "citations": [
            {
                "position": c.position,
                "url": c.url,
                "domain": c.domain,
                "bucket": c.bucket,
                "influence_score": c.influence_score,
                "relevance_score": c.relevance_score,
                "competitor_name": c.competitor_name,
            }
            for c in analysis.citations
        ],
    }


def _snapshot_to_dict(snapshot: CompetitorSnapshot) -> Dict[str, Any]:
    return {
        "name": snapshot.name,
        "domain": snapshot.domain,
        "mention_count": snapshot.mention_count,
        "citation_count": snapshot.citation_count,
        "visibility_score": snapshot.visibility_score,
        "rank": snapshot.rank,
    }
