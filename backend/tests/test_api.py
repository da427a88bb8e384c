"""
Tests for the HTTP layer: routing, request validation, API key checks and
the context dependency override.
"""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from stablemap.api.routes_enrichment import get_context
from stablemap.core.config import Settings
from stablemap.main import app

from tests.fixtures.directory_fixtures import CIRCLE_RESULTS, ENRICHMENT_BLOCK, JOB_BLOCK, make_context


@pytest.fixture
def client():
    ctx = make_context(CIRCLE_RESULTS, ai_reply=ENRICHMENT_BLOCK)
    app.dependency_overrides[get_context] = lambda: ctx
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestRoutes:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_enrich_company(self, client):
        resp = client.post("/api/companies/enrich", json={"company_name": "Circle"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ai_structured"] is True
        assert [p["name"] for p in body["partners"]] == ["Visa", "Coinbase"]

    def test_blank_company_name_rejected(self, client):
        assert client.post("/api/companies/enrich", json={"company_name": ""}).status_code == 422

    def test_job_link_requires_http_url(self, client):
        assert client.post("/api/jobs/analyze", json={"url": "not a url"}).status_code == 422

    def test_job_link_with_pasted_text(self):
        ctx = make_context(ai_reply=JOB_BLOCK)
        app.dependency_overrides[get_context] = lambda: ctx
        try:
            resp = TestClient(app).post(
                "/api/jobs/analyze",
                json={"url": "https://jobs.example.com/1", "pasted_text": "Head of Partnerships"},
            )
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 200
        assert resp.json()["job_title"] == "Head of Partnerships, EMEA"

    def test_funding_batch_size_bounds(self, client):
        resp = client.post("/api/companies/funding/batch", json={"companies": [], "batch_size": 0})
        assert resp.status_code == 422

    def test_central_bank_scan(self, client):
        payload = {"companies": [{"id": "c-circle", "name": "Circle", "categories": ["Central Banks", "Issuer"]}]}
        resp = client.post("/api/central-banks/scan", json=payload)
        assert resp.status_code == 200
        assert resp.json()["fixed"][0]["categories"] == ["Issuer"]


class TestApiKey:
    def test_missing_key_rejected_outside_dev(self, client):
        with patch("stablemap.api.routes_enrichment.settings", Settings(ENV="prod", API_AUTH_KEY="secret")):
            resp = client.post("/api/news/mentions", json={"content": "Circle news"})
        assert resp.status_code == 401

    def test_matching_key_accepted(self, client):
        with patch("stablemap.api.routes_enrichment.settings", Settings(ENV="prod", API_AUTH_KEY="secret")):
            resp = client.post(
                "/api/news/mentions",
                json={"content": "Circle news", "known_names": ["Circle"]},
                headers={"X-API-Key": "secret"},
            )
        assert resp.status_code == 200
        assert resp.json()["mentioned_companies"] == ["Circle"]
