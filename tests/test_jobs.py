"""
Tests for scheduled job endpoints in courtbot/api/jobs.py.

These tests verify the scheduler integration endpoint including
authentication, per-account execution, timeout handling, and error cases.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from courtbot.api.jobs import JobExecutionItem, JobExecutionResult, JobExecutionStatus
from courtbot.models.schemas import CheckResult, Credentials

ACCOUNTS = [
    Credentials(id=1, email="one@example.com", password="pw1"),
    Credentials(id=2, email="two@example.com", password="pw2"),
]
AUTH = {"X-Scheduler-API-Key": "test-key"}


@pytest.fixture
def test_client() -> TestClient:
    """Create a TestClient for the FastAPI app."""
    from courtbot.main import app

    return TestClient(app)


def check_result(account_id: int, success: bool = True, fallback: bool = False) -> CheckResult:
    return CheckResult(
        success=success,
        total_available_slots=10 if success and not fallback else 0,
        checked_at=datetime(2025, 9, 5, 12, 0, tzinfo=UTC),
        fallback_mode=fallback,
        account_id=account_id,
        message="Chrome unavailable, availability unknown: x" if fallback else (None if success else "AuthError: bad"),
    )


class TestSchedulerAuth:
    """Tests for scheduler API key verification."""

    def test_missing_api_key_returns_401(self, test_client: TestClient) -> None:
        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            response = test_client.post("/jobs/check-availability")

        assert response.status_code == 401
        assert "X-Scheduler-API-Key" in response.json()["detail"]

    def test_invalid_api_key_returns_401(self, test_client: TestClient) -> None:
        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            response = test_client.post(
                "/jobs/check-availability", headers={"X-Scheduler-API-Key": "wrong"}
            )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid scheduler API key"

    def test_unconfigured_api_key_returns_500(self, test_client: TestClient) -> None:
        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = ""
            response = test_client.post("/jobs/check-availability", headers=AUTH)

        assert response.status_code == 500


class TestCheckAvailabilityJob:
    """Tests for the per-account availability job."""

    def test_all_accounts_checked(self, test_client: TestClient) -> None:
        """Test that every configured account is checked and counted."""
        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            mock_settings.check_timeout_seconds = 5
            with patch("courtbot.api.jobs.load_accounts", return_value=ACCOUNTS):
                with patch(
                    "courtbot.api.jobs.check_availability",
                    new=AsyncMock(side_effect=lambda account_id, **kwargs: check_result(account_id)),
                ) as mock_check:
                    response = test_client.post("/jobs/check-availability", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["total_accounts"] == 2
        assert data["succeeded"] == 2
        assert data["failed"] == 0
        assert {item["account_id"] for item in data["results"]} == {1, 2}
        assert all(item["status"] == "success" for item in data["results"])
        assert mock_check.await_count == 2
        assert mock_check.await_args.kwargs["source"] == "cron"

    def test_fallback_counts_as_succeeded(self, test_client: TestClient) -> None:
        """Test that fallback and failed results are classified separately."""
        results = {1: check_result(1, fallback=True), 2: check_result(2, success=False)}

        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            mock_settings.check_timeout_seconds = 5
            with patch("courtbot.api.jobs.load_accounts", return_value=ACCOUNTS):
                with patch(
                    "courtbot.api.jobs.check_availability",
                    new=AsyncMock(side_effect=lambda account_id, **kwargs: results[account_id]),
                ):
                    response = test_client.post("/jobs/check-availability", headers=AUTH)

        data = response.json()
        statuses = {item["account_id"]: item["status"] for item in data["results"]}
        assert statuses == {1: "fallback", 2: "failed"}
        assert data["succeeded"] == 1
        assert data["failed"] == 1

    def test_exception_reported_as_error(self, test_client: TestClient) -> None:
        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            mock_settings.check_timeout_seconds = 5
            with patch("courtbot.api.jobs.load_accounts", return_value=ACCOUNTS[:1]):
                with patch(
                    "courtbot.api.jobs.check_availability",
                    new=AsyncMock(side_effect=RuntimeError("database is locked")),
                ):
                    response = test_client.post("/jobs/check-availability", headers=AUTH)

        item = response.json()["results"][0]
        assert item["status"] == "error"
        assert item["error"] == "database is locked"

    def test_timeout_handled(self, test_client: TestClient) -> None:
        """Test that a hung check is cut off at the per-account timeout."""

        async def hang(account_id, **kwargs):
            await asyncio.sleep(5)

        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            mock_settings.check_timeout_seconds = 0.1
            with patch("courtbot.api.jobs.load_accounts", return_value=ACCOUNTS[:1]):
                with patch("courtbot.api.jobs.check_availability", new=hang):
                    response = test_client.post("/jobs/check-availability", headers=AUTH)

        item = response.json()["results"][0]
        assert item["status"] == "timeout"
        assert "timed out" in item["error"]

    def test_no_accounts(self, test_client: TestClient) -> None:
        with patch("courtbot.api.jobs.settings") as mock_settings:
            mock_settings.scheduler_api_key = "test-key"
            with patch("courtbot.api.jobs.load_accounts", return_value=[]):
                response = test_client.post("/jobs/check-availability", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["total_accounts"] == 0
        assert response.json()["results"] == []


class TestJobModels:
    """Tests for job response models."""

    def test_job_execution_status_enum_values(self) -> None:
        assert JobExecutionStatus.SUCCESS.value == "success"
        assert JobExecutionStatus.FALLBACK.value == "fallback"
        assert JobExecutionStatus.FAILED.value == "failed"
        assert JobExecutionStatus.TIMEOUT.value == "timeout"
        assert JobExecutionStatus.ERROR.value == "error"

    def test_job_execution_result(self) -> None:
        item = JobExecutionItem(account_id=1, status=JobExecutionStatus.SUCCESS, total_available_slots=3)
        result = JobExecutionResult(
            executed_at=datetime(2025, 9, 5, 6, 0),
            total_accounts=1,
            succeeded=1,
            failed=0,
            results=[item],
        )

        assert result.results[0].error is None
        assert result.results[0].total_available_slots == 3
