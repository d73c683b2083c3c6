"""
Database Layer

SQLAlchemy models, session management and the run store.
"""

from .models import (
    Base,
    Company,
    KnowledgeBaseItem,
    AssessmentRun,
    AssessmentQuestion,
    QuestionAnalysisRecord,
    CitationRecord,
    CompetitorSnapshot,
    RunStatus,
    ProgressStage,
    QuestionStatus,
)
from .session import (
    get_database_url,
    create_db_engine,
    create_session_factory,
    get_engine,
    get_session_factory,
    get_db_context,
    init_db,
    check_db_connection,
)
from .repository import (
    CompanyRepository,
    RunStore,
    PersistenceError,
    RunStateError,
    RunNotFoundError,
    CompanyNotFoundError,
)

__all__ = [
    # Models
    "Base",
    "Company",
    "KnowledgeBaseItem",
    "AssessmentRun",
    "AssessmentQuestion",
    "QuestionAnalysisRecord",
    "CitationRecord",
    "CompetitorSnapshot",
    "RunStatus",
    "ProgressStage",
    "QuestionStatus",
    # Session
    "get_database_url",
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "get_db_context",
    "init_db",
    "check_db_connection",
    # Repository
    "CompanyRepository",
    "RunStore",
    "PersistenceError",
    "RunStateError",
    "RunNotFoundError",
    "CompanyNotFoundError",
]
