"""Tests for health endpoints, request context middleware and logging setup."""

import json
import logging

import pytest
import structlog

from app.config import Settings, get_settings
from core.logging_config import setup_logging


@pytest.mark.integration
class TestHealth:

    async def test_health_v1(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["version"] == get_settings().APP_VERSION
        assert data["uptime_seconds"] >= 0

    async def test_health_root(self, client):
        """Unversioned probe path for load balancers."""
        resp = await client.get("/api/health")
        assert resp.status_code == 200

    async def test_readiness_pings_database(self, client):
        resp = await client.get("/api/v1/health/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "database": "ok"}


@pytest.mark.integration
class TestRequestContext:

    async def test_generated_request_id_and_timing(self, client):
        resp = await client.get("/api/v1/health")
        assert len(resp.headers["x-request-id"]) == 32
        assert resp.headers["x-process-time"].endswith("ms")

    async def test_caller_request_id_is_echoed(self, client):
        resp = await client.get("/api/v1/health", headers={"X-Request-ID": "req-12345"})
        assert resp.headers["x-request-id"] == "req-12345"

    async def test_error_body_carries_request_id(self, client):
        resp = await client.get("/api/v1/executions/log", headers={"X-Request-ID": "req-401"})
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Missing X-Actor-Id header", "request_id": "req-401"}
        assert resp.headers["x-request-id"] == "req-401"

    async def test_unknown_workflow_is_404_body(self, client, actor_headers):
        resp = await client.get("/api/v1/analytics/workflows/missing/triggers", headers=actor_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Workflow missing not found"


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.unit
class TestLoggingSetup:

    def test_json_lines_carry_bound_context(self, restore_logging, capsys):
        setup_logging(Settings(_env_file=None, ENVIRONMENT="production", LOG_FORMAT="json"))

        with structlog.contextvars.bound_contextvars(workflow_id="wf-1"):
            structlog.get_logger("tests.logging").info("Workflow batch started", leads=2)

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "Workflow batch started"
        assert line["workflow_id"] == "wf-1"
        assert line["leads"] == 2
        assert line["level"] == "info"
        assert line["logger"] == "tests.logging"

    def test_stdlib_records_share_the_format(self, restore_logging, capsys):
        setup_logging(Settings(_env_file=None, ENVIRONMENT="production", LOG_FORMAT="json"))

        logging.getLogger("api.routes.workflows").warning("Workflow wf-1 executed")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "Workflow wf-1 executed"
        assert line["level"] == "warning"
