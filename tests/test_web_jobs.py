"""Tests for the aggregation job endpoint."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from conftest import at, llm_usage
from costwatch.core.alert_detection import AlertDetectionResult
from costwatch.core.cost_aggregation import AggregationResult
from costwatch.db.aggregations_repository import get_aggregation
from costwatch.web.api import create_app

DAY = date(2025, 5, 20)
URL = "/api/jobs/cost-aggregation"


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(create_app())


class TestJobInfo:
    """Tests for GET /api/jobs/cost-aggregation."""

    def test_describes_job(self, client):
        """Job description lists its parameters."""
        data = client.get(URL).json()
        assert data["method"] == "POST"
        assert set(data["parameters"]) == {"date", "skipAlerts", "force"}


class TestRunJob:
    """Tests for POST /api/jobs/cost-aggregation."""

    def test_aggregates_and_detects(self, client, add_cost):
        """Job aggregates the day and runs detection."""
        add_cost("u1", at(DAY), [llm_usage(0.3)])

        response = client.post(URL, params={"date": "2025-05-20"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"]
        assert data["date"] == "2025-05-20"
        assert data["aggregation"]["daily_total_cost"] == 0.3
        assert data["alert_detection"] == {"success": True, "alerts_created": 0, "error": None}
        assert get_aggregation(DAY) is not None

    def test_skip_alerts(self, client):
        """skipAlerts=true skips detection."""
        response = client.post(URL, params={"date": "2025-05-20", "skipAlerts": "true"})
        assert response.status_code == 200
        assert response.json()["alert_detection"] is None

    def test_second_run_skipped(self, client):
        """Existing days are reported as skipped unless forced."""
        client.post(URL, params={"date": "2025-05-20"})
        assert client.post(URL, params={"date": "2025-05-20"}).json()["skipped"] is True
        forced = client.post(URL, params={"date": "2025-05-20", "force": "true"}).json()
        assert forced["skipped"] is False

    def test_bad_date(self, client):
        """Malformed date is a 400."""
        response = client.post(URL, params={"date": "20-05-2025"})
        assert response.status_code == 400
        assert "YYYY-MM-DD" in response.json()["detail"]

    def test_aggregation_failure(self, client, monkeypatch):
        """Aggregation failure is a 500 naming the step."""
        monkeypatch.setattr(
            "costwatch.web.routes.jobs.run_daily_cost_aggregation",
            lambda day, force=False: AggregationResult(success=False, date=day, error="db locked"),
        )
        response = client.post(URL, params={"date": "2025-05-20"})
        assert response.status_code == 500
        assert response.json()["detail"] == {"step": "aggregation", "error": "db locked"}

    def test_detection_failure_does_not_fail_job(self, client, monkeypatch):
        """Detection errors are reported but the job succeeds."""
        monkeypatch.setattr(
            "costwatch.web.routes.jobs.run_alert_detection",
            lambda day: AlertDetectionResult(success=False, date=day, error="boom"),
        )
        response = client.post(URL, params={"date": "2025-05-20"})
        assert response.status_code == 200
        assert response.json()["alert_detection"]["success"] is False


class TestAdminKey:
    """Tests for the admin key check on job routes."""

    def test_missing_key_rejected(self, client, monkeypatch):
        """With a key configured, requests without it get a 401."""
        monkeypatch.setenv("COSTWATCH_ADMIN_KEY", "s3cret")
        assert client.post(URL, params={"date": "2025-05-20"}).status_code == 401
        assert client.get(URL, headers={"X-Admin-Key": "wrong"}).status_code == 401

    def test_valid_key_accepted(self, client, monkeypatch):
        """The right key gets through."""
        monkeypatch.setenv("COSTWATCH_ADMIN_KEY", "s3cret")
        response = client.post(URL, params={"date": "2025-05-20"}, headers={"X-Admin-Key": "s3cret"})
        assert response.status_code == 200
