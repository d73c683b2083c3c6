"""
SQLAlchemy Models for the AI Visibility Engine

Design Principles:
1. One run record is the aggregate root of an assessment
2. Questions, analyses and citations hang off the run (queryable history)
3. Progress lives on the run row so status reads are a single lookup
4. Raw answers are stored verbatim (debugging, re-analysis)
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, CheckConstraint, UniqueConstraint,
    JSON, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local development/tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# ENUMS
# =============================================================================

class RunStatus(enum.Enum):
    """Lifecycle of an assessment run"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class ProgressStage(enum.Enum):
    """Coarse progress stage shown to pollers"""
    SETUP = "setup"
    QUESTIONS = "questions"
    QUERYING = "querying"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class QuestionStatus(enum.Enum):
    """Outcome of a single assessment question"""
    PENDING = "pending"
    ANSWERED = "answered"
    FAILED = "failed"  # Retries exhausted, excluded from scoring


# =============================================================================
# COMPANY & KNOWLEDGE BASE (read by the context builder)
# =============================================================================

class Company(Base):
    """Company whose AI visibility is assessed"""
    __tablename__ = "companies"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)

    # Business context
    industry = Column(String(100))
    business_model = Column(String(50))
    description = Column(Text)

    # Identity
    aliases = Column(JSONType, default=list)  # Alternative brand spellings
    owned_domains = Column(JSONType, default=list)  # Extra domains the company owns
    operated_domains = Column(JSONType, default=list)  # Properties the company controls

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    knowledge_items = relationship("KnowledgeBaseItem", back_populates="company", cascade="all, delete-orphan")
    assessment_runs = relationship("AssessmentRun", back_populates="company", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_company_domain", "domain"),
    )


class KnowledgeBaseItem(Base):
    """Loosely-typed knowledge base entry, grouped by tag"""
    __tablename__ = "knowledge_base_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False)

    tag = Column(String(50), nullable=False)  # company-overview, competitor-notes, keywords, ...
    content = Column(Text, nullable=False, default="")
    item_metadata = Column("metadata", JSONType, default=dict)
    """
    Optional structured payload, e.g. for competitor-notes:
    {"name": "Riva", "domain": "riva.ai"}
    """

    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company", back_populates="knowledge_items")

    __table_args__ = (
        Index("idx_knowledge_company_tag", "company_id", "tag"),
    )


# =============================================================================
# ASSESSMENT RUNS
# =============================================================================

class AssessmentRun(Base):
    """Each assessment execution - the central entity"""
    __tablename__ = "assessment_runs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False)

    # Status tracking
    status = Column(Enum(RunStatus), nullable=False, default=RunStatus.PENDING)
    progress_percentage = Column(Integer, nullable=False, default=0)
    progress_stage = Column(Enum(ProgressStage), nullable=False, default=ProgressStage.SETUP)
    progress_message = Column(String(500))

    # Configuration (question count, allowed types, ...)
    config = Column(JSONType, default=dict)

    # Scores
    total_score = Column(Float)  # 0-100, mean of analyzed question scores
    mention_rate = Column(Float)  # 0-1
    consistency_score = Column(Float)  # 0-100
    citation_stats = Column(JSONType)
    """
    {
        "total": 12,
        "by_bucket": {"owned": 3, "operated": 1, "earned": 6, "competitor": 2},
        "avg_influence_score": 0.61,
        "avg_relevance_score": 0.42
    }
    """
    score_breakdown = Column(JSONType)  # Per-type scores, rankings
    context_richness = Column(Float)  # Diagnostic only

    # Sample size
    questions_total = Column(Integer, default=0)
    questions_analyzed = Column(Integer, default=0)
    questions_failed = Column(Integer, default=0)
    warnings = Column(JSONType, default=list)

    # Timing
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    duration_seconds = Column(Integer)

    # Error tracking
    error_message = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="assessment_runs")
    questions = relationship(
        "AssessmentQuestion",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="AssessmentQuestion.sequence",
    )
    competitor_snapshots = relationship(
        "CompetitorSnapshot",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="CompetitorSnapshot.rank",
    )

    __table_args__ = (
        CheckConstraint("progress_percentage >= 0 AND progress_percentage <= 100", name="ck_run_progress_range"),
        Index("idx_assessment_company_time", "company_id", "created_at"),
        Index("idx_assessment_status", "status"),
    )


class AssessmentQuestion(Base):
    """Question generated for a run"""
    __tablename__ = "assessment_questions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    run_id = Column(Uuid, ForeignKey("assessment_runs.id"), nullable=False)

    sequence = Column(Integer, nullable=False)  # 1-based
    question_type = Column(String(50), nullable=False)
    template_id = Column(String(100))
    text = Column(Text, nullable=False)

    # Outcome
    status = Column(Enum(QuestionStatus), nullable=False, default=QuestionStatus.PENDING)
    attempts = Column(Integer, default=0)
    failure_reason = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    run = relationship("AssessmentRun", back_populates="questions")
    analysis = relationship(
        "QuestionAnalysisRecord",
        back_populates="question",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("run_id", "sequence", name="uq_run_question_sequence"),
        Index("idx_question_run", "run_id"),
    )


class QuestionAnalysisRecord(Base):
    """Analysis of one answer-engine response (1:1 with a question)"""
    __tablename__ = "question_analyses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    question_id = Column(Uuid, ForeignKey("assessment_questions.id"), nullable=False, unique=True)
    run_id = Column(Uuid, ForeignKey("assessment_runs.id"), nullable=False)

    # Raw answer (ENABLES RE-ANALYSIS!)
    answer_text = Column(Text, nullable=False, default="")
    model = Column(String(100))
    tokens_used = Column(Integer, default=0)

    # Mention detection
    mention_detected = Column(Boolean, nullable=False, default=False)
    mention_count = Column(Integer, default=0)
    first_mention_position = Column(Integer)  # Character offset in the answer

    # Scoring
    question_score = Column(Float, nullable=False, default=0.0)  # 0-100

    created_at = Column(DateTime, default=datetime.utcnow)

    question = relationship("AssessmentQuestion", back_populates="analysis")
    citations = relationship(
        "CitationRecord",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="CitationRecord.position",
    )

    __table_args__ = (
        Index("idx_analysis_run", "run_id"),
    )


class CitationRecord(Base):
    """Source cited in an answer, with its ownership bucket"""
    __tablename__ = "citations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    analysis_id = Column(Uuid, ForeignKey("question_analyses.id"), nullable=False)

    position = Column(Integer, nullable=False)  # 1-based order in the answer's source list
    url = Column(String(2000), nullable=False)
    domain = Column(String(255))
    bucket = Column(String(20), nullable=False)  # owned, operated, earned, competitor
    influence_score = Column(Float, nullable=False, default=0.0)  # 0-1
    relevance_score = Column(Float, nullable=False, default=0.0)  # 0-1
    competitor_name = Column(String(255))

    analysis = relationship("QuestionAnalysisRecord", back_populates="citations")

    __table_args__ = (
        CheckConstraint(
            "bucket IN ('owned', 'operated', 'earned', 'competitor')",
            name="ck_citation_bucket",
        ),
        Index("idx_citation_analysis", "analysis_id"),
    )


class CompetitorSnapshot(Base):
    """Per-run competitor benchmark, written at aggregation time"""
    __tablename__ = "competitor_snapshots"

    id = Column(Uuid, primary_key=True, default=uuid4)
    run_id = Column(Uuid, ForeignKey("assessment_runs.id"), nullable=False)

    name = Column(String(255), nullable=False)
    domain = Column(String(255))
    mention_count = Column(Integer, default=0)
    citation_count = Column(Integer, default=0)
    visibility_score = Column(Float, nullable=False, default=0.0)  # 0-100
    rank = Column(Integer)  # 1 = most visible among competitors and target

    created_at = Column(DateTime, default=datetime.utcnow)

    run = relationship("AssessmentRun", back_populates="competitor_snapshots")

    __table_args__ = (
        Index("idx_snapshot_run", "run_id"),
    )
