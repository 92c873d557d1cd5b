"""
Integration tests for FastAPI endpoints.
Runs the application against the SQLite test database with mail in mock mode.
"""
import asyncio
import pytest
from fastapi.testclient import TestClient

from src.core.database import Base, async_session_factory, engine
from src.staffing.database import CandidateModel, UserModel
from src.web.app import app

OWNER = {"X-User-Id": "1"}
RECIPIENT = {"X-User-Id": "2"}
STRANGER = {"X-User-Id": "3"}

TEMPLATE = {
    "name": "Hired Candidates",
    "type": "CANDIDATE",
    "fields": [
        {"name": "candidate_id", "label": "Candidate ID", "source": "candidate_id", "order": 0},
        {"name": "name", "label": "Name", "source": "name", "order": 1},
    ],
    "filters": [{"field": "status", "operator": "EQUALS", "value": "HIRED"}],
    "sort_by": [{"field": "name", "direction": "ASC"}],
    "format": "CSV",
}


async def _reset_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        session.add_all([
            UserModel(id=1, name="Asha Admin", email="asha@example.com", role="admin"),
            UserModel(id=2, name="Ravi Recruiter", email="ravi@example.com", role="user"),
            UserModel(id=3, name="Sam Stranger", email="sam@example.com", role="user"),
        ])
        session.add_all([
            CandidateModel(candidate_id="HTD-001", name="Meera Nair", status="HIRED"),
            CandidateModel(candidate_id="HTD-002", name="Arjun Rao", status="DEPLOYED"),
        ])
        await session.commit()


@pytest.fixture
def api_client():
    asyncio.run(_reset_database())
    with TestClient(app) as client:
        yield client


@pytest.fixture
def template_id(api_client):
    response = api_client.post("/api/report-templates", json=TEMPLATE, headers=OWNER)
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.fixture
def scheduled_report_id(api_client, template_id):
    response = api_client.post("/api/scheduled-reports", headers=OWNER, json={
        "name": "Daily Hired",
        "template_id": template_id,
        "schedule": {"frequency": "DAILY", "time": {"hour": 9, "minute": 0}},
        "recipients": [
            {"user_id": 1, "email": "asha@example.com", "name": "Asha"},
            {"user_id": 2, "email": "ravi@example.com", "name": "Ravi", "delivery_method": "BOTH"},
        ],
        "format": "CSV",
    })
    assert response.status_code == 201
    return response.json()["data"]["id"]


class TestReportTemplates:
    """Template CRUD, validation and on-demand generation."""

    def test_health(self, api_client):
        assert api_client.get("/health").json()["status"] == "ok"

    def test_requires_caller_identity(self, api_client):
        response = api_client.get("/api/report-templates")
        assert response.status_code == 401

    def test_create_and_list(self, api_client, template_id):
        response = api_client.get("/api/report-templates", headers=OWNER)
        body = response.json()

        assert response.status_code == 200
        assert body["total"] == 1
        assert body["data"][0]["id"] == template_id
        assert body["data"][0]["type"] == "CANDIDATE_REPORT"

        assert api_client.get("/api/report-templates", headers=STRANGER).json()["total"] == 0

    def test_create_invalid_template(self, api_client):
        response = api_client.post("/api/report-templates", json={**TEMPLATE, "fields": []}, headers=OWNER)

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == ["Template must have at least one field"]

    def test_validate_endpoint(self, api_client):
        ok = api_client.post("/api/report-templates/validate", json=TEMPLATE).json()["data"]
        assert ok == {"valid": True, "errors": []}

        bad = {**TEMPLATE, "filters": [{"field": "status", "operator": "BETWEEN", "value": 1}]}
        result = api_client.post("/api/report-templates/validate", json=bad).json()["data"]
        assert result["valid"] is False
        assert len(result["errors"]) == 1

    def test_get_private_template(self, api_client, template_id):
        assert api_client.get(f"/api/report-templates/{template_id}", headers=OWNER).status_code == 200
        assert api_client.get(f"/api/report-templates/{template_id}", headers=STRANGER).status_code == 403
        assert api_client.get("/api/report-templates/999", headers=OWNER).status_code == 404

    def test_update_and_delete(self, api_client, template_id):
        response = api_client.put(
            f"/api/report-templates/{template_id}", json={**TEMPLATE, "name": "Renamed"}, headers=OWNER
        )
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Renamed"

        other = api_client.put(f"/api/report-templates/{template_id}", json=TEMPLATE, headers=STRANGER)
        assert other.status_code == 404

        assert api_client.delete(f"/api/report-templates/{template_id}", headers=OWNER).status_code == 200
        assert api_client.get(f"/api/report-templates/{template_id}", headers=OWNER).status_code == 404

    def test_generate_returns_file(self, api_client, template_id):
        response = api_client.post(f"/api/report-templates/{template_id}/generate", json={}, headers=OWNER)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "Candidates.csv" in response.headers["content-disposition"]
        assert response.text.splitlines() == ['"Candidate ID","Name"', '"HTD-001","Meera Nair"']

        usage = api_client.get(f"/api/report-templates/{template_id}", headers=OWNER).json()["data"]
        assert usage["usage_count"] == 1

    def test_generate_with_format_override(self, api_client, template_id):
        response = api_client.post(
            f"/api/report-templates/{template_id}/generate", json={"format": "JSON"}, headers=OWNER
        )
        assert response.status_code == 200
        assert response.json()["summary"]["total_records"] == 1

    def test_generate_unsupported_format(self, api_client, template_id):
        response = api_client.post(
            f"/api/report-templates/{template_id}/generate", json={"format": "DOCX"}, headers=OWNER
        )
        assert response.status_code == 400


class TestScheduledReports:
    """Scheduled report CRUD, manual runs and downloads."""

    def test_schedule_options(self, api_client):
        data = api_client.get("/api/scheduled-reports/options").json()["data"]
        assert [f["value"] for f in data["frequencies"]] == ["DAILY", "WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY", "CUSTOM"]
        assert data["days_of_week"][0]["label"] == "Sunday"

    def test_create_hides_lease_columns(self, api_client, scheduled_report_id):
        data = api_client.get(f"/api/scheduled-reports/{scheduled_report_id}", headers=OWNER).json()["data"]

        assert data["next_run"].endswith("+00:00")
        assert data["next_run"][11:16] == "09:00"
        assert data["is_active"] is True
        assert "claim_token" not in data
        assert "claimed_at" not in data

    def test_create_rejects_bad_schedule(self, api_client, template_id):
        response = api_client.post("/api/scheduled-reports", headers=OWNER, json={
            "name": "Broken",
            "template_id": template_id,
            "schedule": {"frequency": "CUSTOM", "cron_expression": "not a cron"},
            "recipients": [{"email": "asha@example.com"}],
        })
        assert response.status_code == 422

    def test_create_requires_existing_template(self, api_client):
        response = api_client.post("/api/scheduled-reports", headers=OWNER, json={
            "name": "Orphan",
            "template_id": 999,
            "schedule": {"frequency": "DAILY"},
            "recipients": [{"email": "asha@example.com"}],
        })
        assert response.status_code == 404

    def test_list_is_per_owner(self, api_client, scheduled_report_id):
        assert api_client.get("/api/scheduled-reports", headers=OWNER).json()["total"] == 1
        assert api_client.get("/api/scheduled-reports", headers=RECIPIENT).json()["total"] == 0
        assert api_client.get(f"/api/scheduled-reports/{scheduled_report_id}", headers=RECIPIENT).status_code == 404

    def test_update_and_toggle(self, api_client, scheduled_report_id):
        response = api_client.put(
            f"/api/scheduled-reports/{scheduled_report_id}",
            json={"schedule": {"frequency": "WEEKLY", "day_of_week": 5, "time": {"hour": 18, "minute": 0}}},
            headers=OWNER,
        )
        assert response.status_code == 200
        assert response.json()["data"]["next_run"][11:16] == "18:00"

        toggled = api_client.post(f"/api/scheduled-reports/{scheduled_report_id}/toggle", headers=OWNER).json()
        assert toggled["data"]["is_active"] is False
        assert toggled["message"] == "Scheduled report deactivated successfully"

    def test_run_now_and_download(self, api_client, scheduled_report_id):
        response = api_client.post(f"/api/scheduled-reports/{scheduled_report_id}/run", headers=OWNER)
        data = response.json()["data"]

        assert response.status_code == 200
        assert data["success"] is True
        assert data["filename"].endswith(".csv")
        assert [(d["email"], d["method"]) for d in data["deliveries"]] == [
            ("asha@example.com", "EMAIL"),
            ("ravi@example.com", "EMAIL"),
            ("ravi@example.com", "DOWNLOAD_LINK"),
        ]
        assert all(d["success"] for d in data["deliveries"])

        report = api_client.get(f"/api/scheduled-reports/{scheduled_report_id}", headers=OWNER).json()["data"]
        assert report["run_count"] == 1
        assert report["last_run"] is not None

        download = api_client.get(f"/reports/download/{scheduled_report_id}", headers=RECIPIENT)
        assert download.status_code == 200
        assert "Meera Nair" in download.text

        assert api_client.get(f"/reports/download/{scheduled_report_id}", headers=STRANGER).status_code == 403

    def test_download_before_first_run(self, api_client, scheduled_report_id):
        response = api_client.get(f"/reports/download/{scheduled_report_id}", headers=OWNER)
        assert response.status_code == 404

    def test_run_now_foreign_report(self, api_client, scheduled_report_id):
        response = api_client.post(f"/api/scheduled-reports/{scheduled_report_id}/run", headers=RECIPIENT)
        assert response.status_code == 404

    def test_delete(self, api_client, scheduled_report_id):
        assert api_client.delete(f"/api/scheduled-reports/{scheduled_report_id}", headers=STRANGER).status_code == 404
        assert api_client.delete(f"/api/scheduled-reports/{scheduled_report_id}", headers=OWNER).status_code == 200
        assert api_client.get("/api/scheduled-reports", headers=OWNER).json()["total"] == 0


class TestNotifications:
    """Download-link deliveries surface as in-app notifications."""

    def test_download_link_notification(self, api_client, scheduled_report_id):
        api_client.post(f"/api/scheduled-reports/{scheduled_report_id}/run", headers=OWNER)

        notifications = api_client.get("/api/notifications", headers=RECIPIENT).json()["data"]
        assert [n["title"] for n in notifications] == ["Report Ready: Daily Hired"]
        assert notifications[0]["action_url"] == f"/reports/download/{scheduled_report_id}"

        notification_id = notifications[0]["id"]
        assert api_client.post(f"/api/notifications/{notification_id}/read", headers=OWNER).status_code == 404
        read = api_client.post(f"/api/notifications/{notification_id}/read", headers=RECIPIENT)
        assert read.status_code == 200
        assert read.json()["data"]["status"] == "READ"


class TestSchedulerAdmin:
    """Poller administration is limited to admins."""

    def test_non_admin_forbidden(self, api_client):
        assert api_client.get("/api/scheduler/status", headers=RECIPIENT).status_code == 403
        assert api_client.get("/api/scheduler/status").status_code == 401

    def test_status_start_stop(self, api_client, scheduled_report_id):
        status = api_client.get("/api/scheduler/status", headers=OWNER).json()["data"]
        assert status["scheduler"]["is_running"] is False
        assert status["statistics"] == {"total_reports": 1, "active_reports": 1, "due_reports": 0}

        started = api_client.post("/api/scheduler/start", json={"interval_minutes": 15}, headers=OWNER).json()
        assert started["data"]["is_running"] is True
        assert started["data"]["interval_minutes"] == 15

        stopped = api_client.post("/api/scheduler/stop", headers=OWNER).json()
        assert stopped["data"]["is_running"] is False
