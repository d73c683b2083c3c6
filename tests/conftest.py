"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

from typing import Callable, Dict, List, Optional
from uuid import UUID, uuid4

import pytest

from visibility.context.models import CompanyContext, CompetitorRef
from visibility.database.repository import CompanyRepository, RunStore
from visibility.database.session import create_db_engine, create_session_factory, init_db
from visibility.integrations.base import (
    AnswerEngine,
    AnswerEngineError,
    ConnectivityResult,
    RawAnswer,
)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> RunStore:
    return RunStore(session_factory)


@pytest.fixture
def company_repository(session_factory) -> CompanyRepository:
    return CompanyRepository(session_factory)


@pytest.fixture
def seeded_company(store, company_repository) -> UUID:
    """Acme Corp with a small but complete knowledge base."""
    company_id = store.ensure_company(
        name="Acme Corp",
        domain="acme.dev",
        industry="analytics",
        aliases=["Acme"],
    )
    company_repository.add_knowledge_item(
        company_id, "company-overview",
        "Acme Corp builds product analytics for SaaS teams.",
    )
    company_repository.add_knowledge_item(
        company_id, "competitor-notes",
        "Riva (riva.ai) and Nimbus (nimbus.ai) are the main rivals. "
        "We also show up on linkedin.com and g2.com.",
    )
    company_repository.add_knowledge_item(company_id, "use-cases", "Funnel analysis")
    company_repository.add_knowledge_item(company_id, "keywords", "product analytics, funnel tracking")
    company_repository.add_knowledge_item(company_id, "sales-objections", "Too expensive")
    return company_id


# ============================================================================
# Context Fixtures
# ============================================================================

@pytest.fixture
def sample_context() -> CompanyContext:
    return CompanyContext(
        company_id=uuid4(),
        name="Acme Corp",
        domain="acme.dev",
        aliases=["Acme"],
        industry="analytics",
        category="analytics",
        overview=["Acme Corp builds product analytics for SaaS teams."],
        use_cases=["Funnel analysis"],
        keywords=["product analytics"],
        competitors=[
            CompetitorRef(name="Riva", domain="riva.ai"),
            CompetitorRef(name="Nimbus", domain="nimbus.ai"),
        ],
        operated_domains=["app.acme.dev", "docs.acme.dev"],
    )


# ============================================================================
# Answer Engine Fakes
# ============================================================================

DEFAULT_ANSWER = (
    "Acme Corp is a popular choice for product analytics [1]. "
    "Riva is another option [2]."
)
DEFAULT_CITATIONS = ["https://acme.dev/blog", "https://riva.ai/compare"]


class FakeAnswerEngine(AnswerEngine):
    """
    In-memory answer engine.

    ``fail_when`` decides per question text whether the call raises a
    retryable upstream error; ``connectivity`` controls the self-test.
    """

    name = "fake"

    def __init__(
        self,
        answer: str = DEFAULT_ANSWER,
        citations: Optional[List[str]] = None,
        fail_when: Optional[Callable[[str], bool]] = None,
        connectivity: bool = True,
        retryable: bool = True,
    ):
        self.answer = answer
        self.citations = list(DEFAULT_CITATIONS if citations is None else citations)
        self.fail_when = fail_when or (lambda text: False)
        self.connectivity = connectivity
        self.retryable = retryable
        self.calls: Dict[str, int] = {}
        self.closed = False

    async def ask(self, question_text: str) -> RawAnswer:
        self.calls[question_text] = self.calls.get(question_text, 0) + 1
        if self.fail_when(question_text):
            raise AnswerEngineError("API error: 503", status_code=503, retryable=self.retryable)
        return RawAnswer(text=self.answer, citations=list(self.citations), model="fake-model", tokens_used=42)

    async def test_connectivity(self) -> ConnectivityResult:
        if self.connectivity:
            return ConnectivityResult(success=True, latency_ms=1.0)
        return ConnectivityResult(success=False, errors=["Perplexity authentication failed (401)"])

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_engine() -> FakeAnswerEngine:
    return FakeAnswerEngine()
