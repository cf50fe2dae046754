"""Tests for the FastAPI surface."""

import math

import pytest
import structlog
from fastapi.testclient import TestClient

from intake.api import create_app
from intake.container import ServiceContainer
from intake.core.logging import configure_logging
from intake.providers.fakes import FakeEnrichmentProvider, FakeIssueTracker, FakeTaskManager

ADMIN_KEY = "test-admin-key"
SUBMIT = "/api/v1/submissions"
PAYLOAD = {"title": "Checkout crashes", "description": "500 on pay", "severity": "critical", "category": "security"}
ADMIN = {"X-Admin-API-Key": ADMIN_KEY}


@pytest.fixture
def providers():
    return FakeEnrichmentProvider(), FakeIssueTracker(), FakeTaskManager()


@pytest.fixture
def container(settings, clock, no_sleep, providers):
    enrichment, issue_tracker, task_manager = providers
    return ServiceContainer.build(
        settings,
        enrichment=enrichment,
        issue_tracker=issue_tracker,
        task_manager=task_manager,
        clock=clock,
        sleep=no_sleep,
    )


@pytest.fixture
def client(container):
    with TestClient(create_app(container=container)) as client:
        yield client


class TestSubmissions:
    """POST /submissions."""

    def test_full_submission(self, client):
        response = client.post(SUBMIT, json=PAYLOAD)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "full"
        assert body["issue_ref"]["url"].endswith("/issues/1")
        assert body["task_ref"]["external_id"] == "task-1"
        assert body["queued"] is False
        assert body["enriched"]["priority"] == 5

    def test_partial_submission_is_queued(self, client, providers):
        providers[1].fail_always()
        body = client.post(SUBMIT, json=PAYLOAD).json()
        assert body["status"] == "partial"
        assert body["queued"] is True
        assert body["queue_id"].startswith("sub_")
        assert body["stages"]["issue"]["failure"] == "retry_exhausted"
        assert body["stages"]["issue"]["attempts"] == 4

    def test_degraded_enrichment_reported(self, client, providers):
        providers[0].fail_always()
        body = client.post(SUBMIT, json=PAYLOAD).json()
        assert body["status"] == "full"
        assert body["stages"]["enrichment"]["failure"] == "degraded"
        assert body["enriched"]["labels"] == ["security", "critical"]

    def test_invalid_body_rejected_before_any_stage(self, client, providers):
        response = client.post(SUBMIT, json={"title": ""})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_FAILED"
        assert body["errors"][0]["field"] == "title"
        assert providers[0].calls == 0

    def test_unknown_field_rejected(self, client):
        response = client.post(SUBMIT, json={**PAYLOAD, "admin": True})
        assert response.status_code == 400

    def test_request_id_echoed(self, client):
        response = client.post(SUBMIT, json=PAYLOAD, headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestAdmission:
    """Sliding-window admission gate on POST /submissions."""

    def test_rate_limit_headers(self, client, clock):
        response = client.post(SUBMIT, json=PAYLOAD)
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "4"
        assert response.headers["X-RateLimit-Reset"] == str(math.ceil(clock.now + 900))

    def test_sixth_request_denied(self, client, clock, providers):
        remaining = [client.post(SUBMIT, json=PAYLOAD).headers["X-RateLimit-Remaining"] for _ in range(5)]
        assert remaining == ["4", "3", "2", "1", "0"]

        response = client.post(SUBMIT, json=PAYLOAD)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "900"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.json()["code"] == "RATE_LIMITED"
        assert providers[0].calls == 5

    def test_window_slides(self, client, clock):
        for _ in range(5):
            client.post(SUBMIT, json=PAYLOAD)
        clock.advance(900)
        assert client.post(SUBMIT, json=PAYLOAD).status_code == 200

    def test_callers_are_independent(self, client):
        for _ in range(5):
            client.post(SUBMIT, json=PAYLOAD, headers={"X-Forwarded-For": "10.0.0.1"})
        denied = client.post(SUBMIT, json=PAYLOAD, headers={"X-Forwarded-For": "10.0.0.1"})
        other = client.post(SUBMIT, json=PAYLOAD, headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.1"})
        assert denied.status_code == 429
        assert other.status_code == 200

    def test_other_paths_not_limited(self, client):
        for _ in range(10):
            assert client.get("/health/live").status_code == 200


class TestAdminAuth:
    """X-Admin-API-Key on recovery and circuit endpoints."""

    def test_missing_key_rejected(self, client):
        response = client.post("/api/v1/recovery/sweep")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_wrong_key_rejected(self, client):
        response = client.get("/api/v1/circuits", headers={"X-Admin-API-Key": "nope"})
        assert response.status_code == 401

    def test_unconfigured_key_closes_endpoints(self, settings, clock, no_sleep):
        settings = settings.model_copy(update={"admin_api_key": None})
        container = ServiceContainer.build(settings, clock=clock, sleep=no_sleep)
        with TestClient(create_app(container=container)) as client:
            response = client.post("/api/v1/recovery/sweep", headers=ADMIN)
        assert response.status_code == 503
        assert response.json()["code"] == "NOT_CONFIGURED"


class TestRecovery:
    """POST /recovery/sweep and GET /recovery/queue."""

    def test_sweep_recovers_queued_submission(self, client, providers):
        issue_tracker, task_manager = providers[1], providers[2]
        issue_tracker.fail_always()
        queue_id = client.post(SUBMIT, json=PAYLOAD).json()["queue_id"]
        issue_tracker.recover()

        response = client.post("/api/v1/recovery/sweep", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {"total": 1, "succeeded": 1, "failed": 0}
        assert body["results"][0]["id"] == queue_id
        assert body["results"][0]["retried_stages"] == ["issue"]
        assert task_manager.calls == 1

    def test_queue_listing(self, client, providers):
        providers[1].fail_always()
        client.post(SUBMIT, json=PAYLOAD)

        body = client.get("/api/v1/recovery/queue", headers=ADMIN).json()

        assert body["stats"]["total"] == 1
        assert body["stats"]["partial"] == 1
        [submission] = body["submissions"]
        assert submission["status"] == "partial"
        assert submission["successes"] == {"issue": False, "task": True}
        assert "task" in submission["refs"]

    def test_queue_status_filter(self, client, providers):
        providers[1].fail_always()
        client.post(SUBMIT, json=PAYLOAD)
        body = client.get("/api/v1/recovery/queue?status=pending", headers=ADMIN).json()
        assert body["submissions"] == []


class TestCircuits:
    """GET /circuits and POST /circuits/{service}/reset."""

    def test_lists_every_provider(self, client):
        body = client.get("/api/v1/circuits", headers=ADMIN).json()
        assert [c["service"] for c in body["circuits"]] == ["enrichment", "issue_tracker", "task_manager"]
        assert {c["state"] for c in body["circuits"]} == {"closed"}

    def test_open_circuit_reported_and_reset(self, client, container):
        for _ in range(5):
            container.breakers.record_failure("issue_tracker")

        circuits = client.get("/api/v1/circuits", headers=ADMIN).json()["circuits"]
        issue = next(c for c in circuits if c["service"] == "issue_tracker")
        assert issue["state"] == "open"
        assert issue["retry_in"] == 60

        reset = client.post("/api/v1/circuits/issue_tracker/reset", headers=ADMIN)
        assert reset.status_code == 200
        assert reset.json()["state"] == "closed"

    def test_unknown_service_rejected(self, client):
        response = client.post("/api/v1/circuits/payments/reset", headers=ADMIN)
        assert response.status_code == 400

    def test_reports_lifetime_counters(self, client, container, providers):
        providers[1].fail_always()
        for _ in range(5):
            client.post(SUBMIT, json=PAYLOAD)
        client.post(SUBMIT, json=PAYLOAD, headers={"X-Forwarded-For": "10.0.0.9"})

        circuits = client.get("/api/v1/circuits", headers=ADMIN).json()["circuits"]
        issue = next(c for c in circuits if c["service"] == "issue_tracker")
        assert issue["state"] == "open"
        assert issue["stats"] == {
            "successful_requests": 0,
            "failed_requests": 5,
            "rejected_requests": 1,
            "state_changes": 1,
        }


class TestHealth:
    def test_healthy(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert set(body["checks"]) == {"enrichment", "issue_tracker", "task_manager", "submission_queue"}

    def test_open_circuit_degrades(self, client, container):
        for _ in range(5):
            container.breakers.record_failure("task_manager")
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_liveness(self, client):
        assert client.get("/health/live").status_code == 200

    def test_full_queue_fails_readiness(self, client, container, providers):
        providers[2].fail_always()
        container.queue.max_size = 1
        client.post(SUBMIT, json=PAYLOAD)

        response = client.get("/health/ready")
        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["submission_queue"]["details"] == {"depth": 1, "max_size": 1}


class TestWithProductionLogging:
    """The app behaves the same once ``intake serve`` has configured logging."""

    @pytest.fixture(autouse=True)
    def json_logging(self):
        configure_logging(level="DEBUG", json_format=True)
        yield
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()

    def test_full_submission(self, client):
        response = client.post(SUBMIT, json=PAYLOAD)
        assert response.status_code == 200
        assert response.json()["status"] == "full"

    def test_failing_stage_is_logged_and_queued(self, client, providers):
        providers[1].fail_always()
        response = client.post(SUBMIT, json=PAYLOAD)
        assert response.status_code == 200
        assert response.json()["queued"] is True

    def test_sweep_with_logging(self, client, providers):
        providers[2].fail_always()
        client.post(SUBMIT, json=PAYLOAD)
        providers[2].recover()

        response = client.post("/api/v1/recovery/sweep", headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["summary"]["succeeded"] == 1
