"""
Tests for the assessments API.

The service is swapped in through FastAPI dependency overrides so requests
hit an in-memory database and a fake answer engine.
"""

import runpy
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.app import app
from api.assessments import get_assessment_service
from conftest import FakeAnswerEngine
from visibility.services.assessment import AssessmentService
from visibility.utils.config import Settings


def _settings(**overrides):
    values = {
        "PERPLEXITY_API_KEY": "test-key",
        "RETRY_INITIAL_DELAY": 0.0,
        "QUESTION_TIMEOUT": 5.0,
        "DEFAULT_QUESTION_COUNT": 4,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def engines():
    return []


@pytest.fixture
def service(store, engines):
    def factory():
        engine = FakeAnswerEngine()
        engines.append(engine)
        return engine

    return AssessmentService(store=store, engine_factory=factory, settings=_settings())


@pytest.fixture
def client(service):
    app.dependency_overrides[get_assessment_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestStartAssessment:

    def test_runs_to_completion(self, client, seeded_company, engines):
        response = client.post("/api/assessments", json={
            "company_name": "Acme Corp",
            "domain": "acme.dev",
            "question_count": 4,
        })

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["status_url"] == f"/api/assessments/{body['run_id']}/status"

        # The background task has run by the time the response is returned
        status = client.get(body["status_url"]).json()
        assert status["status"] == "completed"
        assert status["progress_percentage"] == 100
        assert status["results_url"] == f"/api/assessments/{body['run_id']}"
        assert status["error_message"] is None
        assert engines and all(engine.closed for engine in engines)

        results = client.get(status["results_url"]).json()
        assert results["company_id"] == str(seeded_company)
        assert len(results["questions"]) == 4
        assert results["questions_analyzed"] == 4

    def test_restricted_question_types(self, client):
        response = client.post("/api/assessments", json={
            "company_name": "Orbit",
            "domain": "orbit.io",
            "question_count": 2,
            "question_types": ["comparison"],
        })

        results = client.get(f"/api/assessments/{response.json()['run_id']}").json()
        assert {q["question_type"] for q in results["questions"]} == {"comparison"}

    def test_unknown_question_type_rejected(self, client):
        response = client.post("/api/assessments", json={
            "company_name": "Orbit",
            "domain": "orbit.io",
            "question_types": ["sarcastic"],
        })

        assert response.status_code == 422

    def test_question_count_over_limit_rejected(self, client):
        response = client.post("/api/assessments", json={
            "company_name": "Orbit",
            "domain": "orbit.io",
            "question_count": 500,
        })

        assert response.status_code == 422

    def test_unconfigured_engine_returns_503(self, store):
        service = AssessmentService(store=store, settings=_settings(PERPLEXITY_API_KEY=None))
        app.dependency_overrides[get_assessment_service] = lambda: service
        try:
            response = TestClient(app).post("/api/assessments", json={
                "company_name": "Orbit",
                "domain": "orbit.io",
            })
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503


class TestFailedAssessment:

    def test_connectivity_failure_visible_in_status(self, store):
        service = AssessmentService(
            store=store,
            engine_factory=lambda: FakeAnswerEngine(connectivity=False),
            settings=_settings(),
        )
        app.dependency_overrides[get_assessment_service] = lambda: service
        try:
            client = TestClient(app)
            run_id = client.post("/api/assessments", json={
                "company_name": "Orbit",
                "domain": "orbit.io",
            }).json()["run_id"]
            status = client.get(f"/api/assessments/{run_id}/status").json()
        finally:
            app.dependency_overrides.clear()

        assert status["status"] == "failed"
        assert "connectivity check failed" in status["error_message"]
        assert status["results_url"] is None
        assert status["total_score"] is None


class TestReads:

    def test_unknown_run_is_404(self, client):
        missing = uuid4()

        assert client.get(f"/api/assessments/{missing}/status").status_code == 404
        assert client.get(f"/api/assessments/{missing}").status_code == 404

    def test_invalid_run_id_is_422(self, client):
        assert client.get("/api/assessments/not-a-uuid/status").status_code == 422

    def test_company_history(self, client, seeded_company):
        for _ in range(2):
            client.post("/api/assessments", json={
                "company_name": "Acme Corp",
                "domain": "acme.dev",
                "question_count": 1,
            })

        response = client.get(f"/api/companies/{seeded_company}/assessments")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert all(a["status"] == "completed" for a in body["assessments"])

    def test_company_trends(self, client, seeded_company):
        for _ in range(2):
            client.post("/api/assessments", json={
                "company_name": "Acme Corp",
                "domain": "acme.dev",
                "question_count": 2,
            })

        response = client.get(f"/api/companies/{seeded_company}/trends")

        assert response.status_code == 200
        body = response.json()
        assert body["company_name"] == "Acme Corp"
        assert body["runs_compared"] == 2
        assert body["total_score"]["change"] == 0.0
        assert body["total_score"]["direction"] == "stable"

    def test_trends_for_unknown_company_is_404(self, client):
        assert client.get(f"/api/companies/{uuid4()}/trends").status_code == 404

    def test_connectivity_endpoint(self, client):
        response = client.post("/api/assessments/connectivity")

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_health(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_module_runs_uvicorn(self):
        with patch("uvicorn.run") as run:
            runpy.run_module("api.app", run_name="__main__")

        run.assert_called_once()
        assert run.call_args.args[0] == "api.app:app"
        assert run.call_args.kwargs["port"] == 8000
