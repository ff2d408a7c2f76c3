"""Tests for the FastAPI surface using an injected in-memory service."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tierwise.api.app import create_app
from tierwise.orchestration.escalation import EscalationEngine
from tierwise.orchestration.registry import SpecialistRegistry
from tierwise.orchestration.service import ConsultationService
from tierwise.specialists.catalog import build_registry, load_catalog
from tests.fakes import FakeSpecialist, MemoryAuditLog, criterion


@pytest.fixture
def reference_client():
    catalog = load_catalog()
    engine = EscalationEngine(build_registry(catalog), catalog.classifier)
    service = ConsultationService(engine, MemoryAuditLog())
    with TestClient(create_app(service=service)) as client:
        yield client


@pytest.fixture
def routed_client():
    """Registry without a default domain; tasks route by their first word."""
    specialists = [
        FakeSpecialist("arch-1", "arch", 1, criteria=[criterion("big", 2)]),
        FakeSpecialist("arch-2", "arch", 2),
    ]
    engine = EscalationEngine(
        SpecialistRegistry(specialists), lambda task: task.description.split()[0]
    )
    with TestClient(create_app(service=ConsultationService(engine, MemoryAuditLog()))) as client:
        yield client


class TestHealth:
    def test_health(self, reference_client):
        resp = reference_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}

    def test_ready_reports_registry(self, reference_client):
        body = reference_client.get("/ready").json()
        assert body["status"] == "ready"
        assert body["specialists"] == 9
        assert body["domains"] == ["architecture", "data", "security"]


class TestSpecialists:
    def test_grouped_by_domain_lowest_tier_first(self, reference_client):
        body = reference_client.get("/specialists").json()
        assert body["default_domain"] == "architecture"
        security = body["domains"]["security"]
        assert [s["id"] for s in security] == [
            "security-generalist", "auth-systems-specialist", "security-architect",
        ]
        assert security[0]["tier"] == "TIER_1"


class TestConsultations:
    def test_post_runs_consultation(self, reference_client):
        resp = reference_client.post(
            "/consultations",
            json={
                "task": {"id": "t-1", "description": "Add a simple login form to the marketing site"},
                "domain": "security",
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["task_id"] == "t-1"
        assert body["termination"] == "no-handoff"
        assert [r["specialist_id"] for r in body["chain"]] == ["security-generalist"]

    def test_get_returns_audited_result(self, reference_client):
        created = reference_client.post(
            "/consultations", json={"task": {"description": "Design a modular architecture"}}
        ).json()
        resp = reference_client.get(f"/consultations/{created['request_id']}")
        assert resp.status_code == 200
        assert resp.json()["request_id"] == created["request_id"]

    def test_get_unknown_is_404(self, reference_client):
        assert reference_client.get("/consultations/missing").status_code == 404

    def test_context_values_reach_specialists(self, reference_client):
        body = reference_client.post(
            "/consultations",
            json={
                "task": {"description": "Add a simple login form to the marketing site"},
                "context": {"regulated_industry": True},
                "domain": "security",
            },
        ).json()
        assert [r["specialist_id"] for r in body["chain"]] == [
            "security-generalist", "auth-systems-specialist",
        ]

    def test_unknown_domain_is_422(self, routed_client):
        resp = routed_client.post("/consultations", json={"task": {"description": "billing export"}})
        assert resp.status_code == 422
        assert resp.json()["domain"] == "billing"

    def test_missing_description_is_422(self, routed_client):
        assert routed_client.post("/consultations", json={"task": {}}).status_code == 422

    def test_escalation_over_http(self, routed_client):
        body = routed_client.post("/consultations", json={"task": {"description": "arch work"}}).json()
        assert [r["tier"] for r in body["chain"]] == ["TIER_1", "TIER_2"]
        assert body["termination"] == "exhausted"
