"""
API Endpoints for AI Visibility Assessments

Handles:
1. Start an assessment (runs in background)
2. Poll assessment status
3. Fetch full results
4. List a company's assessment history
5. Score and mention-rate trends for a company
6. Answer engine connectivity self-test
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from visibility.database.repository import CompanyNotFoundError, PersistenceError, RunNotFoundError
from visibility.questions.templates import QuestionType
from visibility.services.assessment import AssessmentOptions, AssessmentService, CompanyInput

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Assessments"],
)


@lru_cache
def get_assessment_service() -> AssessmentService:
    """Shared service instance (overridden in tests)."""
    return AssessmentService()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class AssessmentRequest(BaseModel):
    """Request to start an AI visibility assessment."""
    company_name: str = Field(..., min_length=1, max_length=255)
    domain: str = Field(..., min_length=3, max_length=255)
    company_id: Optional[UUID] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)
    owned_domains: List[str] = Field(default_factory=list)
    operated_domains: List[str] = Field(default_factory=list)

    question_count: Optional[int] = Field(default=None, ge=1, description="Number of assessment questions")
    question_types: Optional[List[QuestionType]] = Field(
        default=None,
        description="Restrict to these question types (default: all)",
    )


class AssessmentStarted(BaseModel):
    run_id: str
    status: str
    status_url: str
    message: str


class AssessmentStatusResponse(BaseModel):
    """Status poll response."""
    run_id: str
    status: str
    progress_percentage: int
    progress_stage: Optional[str] = None
    progress_message: Optional[str] = None
    error_message: Optional[str] = None
    results_url: Optional[str] = None
    total_score: Optional[float] = None


class AssessmentSummary(BaseModel):
    run_id: str
    status: str
    total_score: Optional[float] = None
    mention_rate: Optional[float] = None
    questions_analyzed: int = 0
    questions_failed: int = 0
    created_at: Optional[str] = None
    completed_at: Optional[str] = None


class AssessmentHistoryResponse(BaseModel):
    company_id: str
    assessments: List[AssessmentSummary]
    total: int


class ConnectivityResponse(BaseModel):
    success: bool
    errors: List[str] = Field(default_factory=list)
    latency_ms: Optional[float] = None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/assessments", response_model=AssessmentStarted, status_code=202)
async def start_assessment(
    request: AssessmentRequest,
    background_tasks: BackgroundTasks,
    service: AssessmentService = Depends(get_assessment_service),
):
    """
    Start an assessment.

    Returns immediately with the run id; the run executes in the background.
    Poll /api/assessments/{run_id}/status for progress.
    """
    if not service.engine_configured:
        raise HTTPException(status_code=503, detail="Answer engine is not configured")

    company = CompanyInput(
        name=request.company_name,
        domain=request.domain,
        company_id=request.company_id,
        industry=request.industry,
        description=request.description,
        aliases=request.aliases,
        owned_domains=request.owned_domains,
        operated_domains=request.operated_domains,
    )
    options = AssessmentOptions(
        question_count=request.question_count,
        allowed_types=[t.value for t in request.question_types] if request.question_types else None,
    )

    try:
        run_id = service.start_assessment(company, options)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Could not start assessment for {request.domain}: {e}")
        raise HTTPException(status_code=500, detail="Could not create assessment")

    background_tasks.add_task(service.run_assessment, run_id)

    return AssessmentStarted(
        run_id=str(run_id),
        status="pending",
        status_url=f"/api/assessments/{run_id}/status",
        message=f"Assessment started for {request.domain}",
    )


@router.get("/assessments/{run_id}/status", response_model=AssessmentStatusResponse)
async def get_assessment_status(
    run_id: UUID,
    service: AssessmentService = Depends(get_assessment_service),
):
    """Get assessment progress."""
    try:
        return service.get_status(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Assessment not found")


@router.get("/assessments/{run_id}")
async def get_assessment_results(
    run_id: UUID,
    service: AssessmentService = Depends(get_assessment_service),
) -> Dict[str, Any]:
    """Full results: scores, questions with analyses and citations, competitors."""
    try:
        return service.get_results(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Assessment not found")


@router.get("/companies/{company_id}/assessments", response_model=AssessmentHistoryResponse)
async def list_company_assessments(
    company_id: UUID,
    limit: int = Query(default=20, ge=1, le=100),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Assessment history for a company, newest first."""
    runs = service.list_company_runs(company_id, limit=limit)
    return AssessmentHistoryResponse(
        company_id=str(company_id),
        assessments=[AssessmentSummary(**{k: r.get(k) for k in AssessmentSummary.model_fields}) for r in runs],
        total=len(runs),
    )


@router.get("/companies/{company_id}/trends")
async def get_company_trends(
    company_id: UUID,
    limit: int = Query(default=20, ge=2, le=100),
    service: AssessmentService = Depends(get_assessment_service),
) -> Dict[str, Any]:
    """Score and mention-rate changes across the company's completed assessments."""
    try:
        return service.get_trends(company_id, limit=limit)
    except CompanyNotFoundError:
        raise HTTPException(status_code=404, detail="Company not found")


@router.post("/assessments/connectivity", response_model=ConnectivityResponse)
async def test_connectivity(
    service: AssessmentService = Depends(get_assessment_service),
):
    """Run the answer engine self-test."""
    result = await service.test_connectivity()
    if result is None:
        raise HTTPException(status_code=503, detail="Answer engine is not configured")
    return ConnectivityResponse(**result.to_dict())
