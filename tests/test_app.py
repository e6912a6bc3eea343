import asyncio
import os
import sys
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app, get_deps, get_lock
from graph.models import Lead
from graph.state import WorkflowDeps
from tools.lead_lock import LeadLock
from tools.supabase_store import InMemoryStore

from fakes import make_llm, make_research


class TestApi:
    """Test the HTTP endpoints with in-memory capabilities."""

    def setup_method(self):
        self.store = InMemoryStore([
            Lead(id="lead-1", first_name="Jane", last_name="Doe", email="jane@acme.com", company_name="Acme Corp"),
        ])
        self.deps = WorkflowDeps(store=self.store, research=make_research(), llm=make_llm())
        self.lock = LeadLock(redis_url="redis://localhost:1")
        app.dependency_overrides[get_deps] = lambda: self.deps
        app.dependency_overrides[get_lock] = lambda: self.lock
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["workflow"] == "ready"

    def test_run_workflow(self):
        response = self.client.post("/workflows/lead-processing", json={"leadId": "lead-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["summary"]["status"] == "completed"
        assert data["summary"]["finalStatus"] == "qualified"
        assert data["context"]["lead"]["status"] == "qualified"
        assert data["context"]["steps"][0]["state"] == "discovery"

    def test_run_workflow_unknown_lead(self):
        response = self.client.post("/workflows/lead-processing", json={"leadId": "missing"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["summary"]["status"] == "failed"
        assert data["summary"]["error"] == "Lead not found: missing"

    def test_lead_id_required(self):
        assert self.client.post("/workflows/lead-processing", json={}).status_code == 400
        assert self.client.post("/workflows/lead-processing", json={"leadId": ""}).status_code == 400
        assert self.client.post("/workflows/lead-processing", content=b"not json").status_code == 400

    def test_non_string_lead_id_is_server_error(self):
        response = self.client.post("/workflows/lead-processing", json={"leadId": 42})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to execute workflow"
        assert "must be a string" in data["details"]

    def test_workflow_already_running(self):
        asyncio.run(self.lock.acquire("lead-1"))

        response = self.client.post("/workflows/lead-processing", json={"leadId": "lead-1"})

        assert response.status_code == 409

    def test_workflow_timeout(self):
        async def slow_workflow(lead_id, deps, lock=None):
            await asyncio.sleep(1)

        with patch("app.execute_lead_processing_workflow", slow_workflow), \
                patch("app.workflow_timeout", return_value=0.01):
            response = self.client.post("/workflows/lead-processing", json={"leadId": "lead-1"})

        assert response.status_code == 504
        assert response.json()["error"] == "Workflow timed out"

    def test_workflow_unexpected_error(self):
        with patch("app.execute_lead_processing_workflow", AsyncMock(side_effect=RuntimeError("boom"))):
            response = self.client.post("/workflows/lead-processing", json={"leadId": "lead-1"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to execute workflow", "details": "boom"}

    def test_batch(self):
        response = self.client.post("/workflows/lead-processing/batch", json={"leadIds": ["lead-1", "missing"]})

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 2
        assert [r["success"] for r in data["results"]] == [True, False]

    def test_batch_requires_ids(self):
        response = self.client.post("/workflows/lead-processing/batch", json={"leadIds": "lead-1"})

        assert response.status_code == 400

    def test_get_lead(self):
        self.client.post("/workflows/lead-processing", json={"leadId": "lead-1"})

        response = self.client.get("/leads/lead-1")

        assert response.status_code == 200
        data = response.json()
        assert data["lead"]["score"] == 85
        assert data["recentActivities"][0]["subject"] == "Lead Processing Workflow Completed"
        assert len(data["recentActivities"]) <= 5

    def test_get_lead_missing(self):
        assert self.client.get("/leads/missing").status_code == 404

    def test_enrich_lead(self):
        response = self.client.post("/leads/lead-1/enrich")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["enrichment"]["researchSummary"] == "Leads a growing sales team."
        assert data["lead"]["pain_points"] == ["Manual prospecting", "Low reply rates"]
        assert self.store.activities[-1].subject == "Lead Enrichment Completed"

    def test_enrich_missing_lead(self):
        assert self.client.post("/leads/missing/enrich").status_code == 404
