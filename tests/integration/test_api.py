# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the interventions API.

Requests go through the full application (routing, validation and
exception handlers) against the in-memory SQLite session.
"""

from datetime import timedelta

import httpx
import pytest
from fastapi import FastAPI

from src.api.app import create_app
from src.api.dependencies import get_db
from src.core.config import clear_settings_cache
from src.utils.datetime import utc_today
from tests.conftest import LEVEL_B_STEP_DATA


@pytest.fixture
def app(db) -> FastAPI:
    """Create the application with the test session."""
    app = create_app()

    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    return app


@pytest.fixture
async def client(app):
    """Create an async test client."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def metrics_payload(sample_metrics_data) -> dict:
    return dict(sample_metrics_data)


class TestRouting:
    """Tests for route registration."""

    def test_routes_registered(self, app):
        routes = [route.path for route in app.routes]

        assert "/health" in routes
        assert "/api/v1/behaviour/import" in routes
        assert "/api/v1/interventions/decision" in routes
        assert "/api/v1/interventions/level-b/{intervention_id}/steps" in routes
        assert "/api/v1/interventions/level-c/{case_id}/context-packet" in routes
        assert "/api/v1/interventions/monitoring/run" in routes
        assert "/api/v1/interventions/analytics/dashboard" in routes
        assert "/api/v1/reports/weekly-digest" in routes


class TestBehaviourAPI:
    """Tests for behaviour endpoints."""

    @pytest.mark.asyncio
    async def test_csv_import_reports_row_errors(self, client):
        yesterday = (utc_today() - timedelta(days=1)).isoformat()
        csv_text = (
            "Student ID,Event Type,Event Date,Points,Class Context\n"
            f"S1,demerit,{yesterday},2,Math\n"
            f"S1,detention,{yesterday},1,Math\n"
            f"S1,demerit,{yesterday},1,Math\n"
            f"S1,demerit,{yesterday},1,Science\n"
        )

        response = await client.post("/api/v1/behaviour/import", json={"csv_text": csv_text})

        assert response.status_code == 201
        data = response.json()
        assert data["recorded"] == 3
        assert [error["row"] for error in data["errors"]] == [2]
        assert data["insights"]["students"] == ["S1"]

        insights = await client.get("/api/v1/behaviour/students/S1/insights")
        assert insights.status_code == 200
        windows = {row["time_window"]: row for row in insights.json()["insights"]}
        assert windows["7d"]["total_demerits"] == 3
        assert windows["7d"]["risk_level"] == "yellow"

    @pytest.mark.asyncio
    async def test_csv_without_required_columns(self, client):
        response = await client.post(
            "/api/v1/behaviour/import", json={"csv_text": "student_id,notes\nS1,late\n"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_record_events_without_recompute(self, client):
        response = await client.post(
            "/api/v1/behaviour/events",
            json={
                "events": [
                    {"student_id": "S9", "event_type": "merit", "event_date": "2024-03-14", "points": 2}
                ],
                "recompute": False,
            },
        )

        assert response.status_code == 201
        assert response.json() == {"recorded": 1, "errors": [], "insights": None}


class TestInterventionsAPI:
    """Tests for decision tree and Level A/B endpoints."""

    @pytest.mark.asyncio
    async def test_decision(self, client, domain_ids):
        response = await client.post(
            "/api/v1/interventions/decision",
            json={"student_id": "S1", "domain_id": domain_ids["hallways"], "demerit_assigned": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["recommended_level"] == "B"
        assert data["reasons"] == ["Demerit was assigned"]
        assert data["summary"]["color"] == "yellow"

    @pytest.mark.asyncio
    async def test_create_level_a_with_escalation(self, client, domain_ids):
        response = await client.post(
            "/api/v1/interventions/level-a",
            json={
                "student_id": "S1",
                "staff_name": "Mr. Yusuf",
                "domain_id": domain_ids["hallways"],
                "intervention_type": "quick_redirect",
                "outcome": "escalated",
                "escalation_trigger": "peer_impact",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["intervention"]["escalated_to_b"] is True
        assert data["level_b"]["escalated_from_level_a_id"] == data["intervention"]["id"]
        assert data["level_b"]["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_invalid_enum_is_rejected(self, client, domain_ids):
        response = await client.post(
            "/api/v1/interventions/level-a",
            json={
                "student_id": "S1",
                "staff_name": "Mr. Yusuf",
                "domain_id": domain_ids["hallways"],
                "intervention_type": "detention",
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_domain(self, client):
        response = await client.post(
            "/api/v1/interventions/level-a",
            json={
                "student_id": "S1",
                "staff_name": "Mr. Yusuf",
                "domain_id": 999,
                "intervention_type": "redo",
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_record_is_404(self, client):
        response = await client.get("/api/v1/interventions/level-b/does-not-exist")

        assert response.status_code == 404
        assert "not found" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_level_b_step_flow(self, client, domain_ids):
        created = await client.post(
            "/api/v1/interventions/level-b",
            json={
                "student_id": "S1",
                "staff_name": "Ms. Rahman",
                "domain_id": domain_ids["hallways"],
                "escalation_trigger": "demerit_assigned",
            },
        )
        assert created.status_code == 201
        intervention_id = created.json()["id"]
        path = f"/api/v1/interventions/level-b/{intervention_id}"

        premature = await client.patch(f"{path}/steps", json={"step": 7, "data": LEVEL_B_STEP_DATA[7]})
        assert premature.status_code == 422

        for step in range(1, 8):
            response = await client.patch(f"{path}/steps", json={"step": step, "data": LEVEL_B_STEP_DATA[step]})
            assert response.status_code == 200

        data = response.json()
        assert data["status"] == "monitoring"
        assert data["monitoring_start_date"] == utc_today().isoformat()
        assert data["monitoring_end_date"] == (utc_today() + timedelta(days=3)).isoformat()

        locked = await client.patch(f"{path}/steps", json={"step": 1, "data": {"b1_regulate_notes": "edit"}})
        assert locked.status_code == 409

        rate = await client.post(
            f"{path}/daily-rate", json={"day": utc_today().isoformat(), "success_rate": 90}
        )
        assert rate.status_code == 200

        completed = await client.post(f"{path}/complete", json={})
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed_success"

    @pytest.mark.asyncio
    async def test_step_out_of_range(self, client):
        response = await client.patch(
            "/api/v1/interventions/level-b/any/steps", json={"step": 8, "data": {}}
        )

        assert response.status_code == 422


class TestLevelCAPI:
    """Tests for the Level C case workflow."""

    @pytest.mark.asyncio
    async def test_case_workflow(self, client):
        created = await client.post(
            "/api/v1/interventions/level-c",
            json={"student_id": "S1", "trigger_type": "threshold_35_points"},
        )
        assert created.status_code == 201
        case = created.json()
        assert case["case_type"] == "intensive"
        path = f"/api/v1/interventions/level-c/{case['id']}"

        early = await client.post(f"{path}/admin-response", json={"admin_response_type": "oss"})
        assert early.status_code == 409

        packet = await client.put(
            f"{path}/context-packet",
            json={
                "incident_summary": "Fight at lunch",
                "pattern_review": "Second fight this month",
                "environmental_factors": ["Unsupervised corner"],
                "prior_interventions_summary": "Level B twice",
            },
        )
        assert packet.json()["status"] == "admin_response"

        response = await client.post(f"{path}/admin-response", json={"admin_response_type": "oss"})
        assert response.json()["status"] == "pending_reentry"

        plan = await client.post(
            f"{path}/reentry-plan",
            json={"support_plan_goal": "Walk away and find an adult", "reentry_date": "2024-03-18"},
        )
        assert plan.status_code == 200
        protocol = plan.json()["reentry_protocol"]
        assert protocol["source_type"] == "oss"
        assert protocol["monitoring_method"] == "intensive"
        assert protocol["monitoring_end_date"] == "2024-03-28"

    @pytest.mark.asyncio
    async def test_point_trigger(self, client):
        response = await client.get("/api/v1/interventions/level-c/point-trigger", params={"points": 31})

        assert response.status_code == 200
        assert response.json()["trigger_type"] == "threshold_30_points"


class TestAnalyticsAPI:
    """Tests for the analytics dashboard."""

    @pytest.mark.asyncio
    async def test_dashboard(self, client):
        response = await client.get("/api/v1/interventions/analytics/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["distribution_healthy"] is True
        assert len(data["weekly_trends"]) == 8
        assert {metric["domain_key"] for metric in data["domain_metrics"]} >= {"hallways", "respect"}

    @pytest.mark.asyncio
    async def test_reversed_range(self, client):
        response = await client.get(
            "/api/v1/interventions/analytics/dashboard",
            params={"start_date": "2024-03-10T00:00:00Z", "end_date": "2024-03-01T00:00:00Z"},
        )

        assert response.status_code == 422


class TestReportsAPI:
    """Tests for digest endpoints."""

    @pytest.mark.asyncio
    async def test_weekly_digest(self, client, metrics_payload):
        response = await client.post(
            "/api/v1/reports/weekly-digest",
            json={"start_date": "2024-03-11", "end_date": "2024-03-17", "metrics": metrics_payload},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["health_status"] == "GREEN"
        assert data["emails_sent"] == 0
        assert data["report_id"] is not None
        assert data["insights"][0] == "Excellent participation rate at 85%"

    @pytest.mark.asyncio
    async def test_weekly_digest_reversed_period(self, client, metrics_payload):
        response = await client.post(
            "/api/v1/reports/weekly-digest",
            json={"start_date": "2024-03-17", "end_date": "2024-03-11", "metrics": metrics_payload},
        )

        assert response.status_code == 422


class TestCronAuth:
    """Tests for the cron-triggered endpoints."""

    @pytest.mark.asyncio
    async def test_open_without_secret(self, client):
        response = await client.post("/api/v1/interventions/monitoring/run", params={"today": "2024-03-15"})

        assert response.status_code == 200
        assert response.json()["run_date"] == "2024-03-15"

    @pytest.mark.asyncio
    async def test_secret_required(self, client, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "s3cret")
        clear_settings_cache()

        denied = await client.post("/api/v1/behaviour/reprocess")
        wrong = await client.post(
            "/api/v1/behaviour/reprocess", headers={"Authorization": "Bearer nope"}
        )
        allowed = await client.post(
            "/api/v1/behaviour/reprocess", headers={"Authorization": "Bearer s3cret"}
        )

        assert denied.status_code == 401
        assert wrong.status_code == 401
        assert allowed.status_code == 200
        assert allowed.json() == {"processed": 0, "students": [], "failed": []}
