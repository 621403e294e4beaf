"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient

from repospider.commands import SpiderRequest
from repospider.config import ConfigError
from repospider.errors import EnumerationError
from repospider.models import SpiderFailure, SpiderSummary
from repospider.service import create_app


class _StubRunner:
    def __init__(self) -> None:
        self.requests: List[SpiderRequest] = []
        self.error: Exception | None = None

    async def __call__(self, request: SpiderRequest) -> SpiderSummary:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return SpiderSummary(
            repositories_detected=2,
            projects_detected=1,
            failed=[SpiderFailure("https://home", "clone", "cannot clone")],
            persisted_analyses=["acme/widgets.json"],
        )


@pytest.fixture
def runner() -> _StubRunner:
    return _StubRunner()


@pytest.fixture
def client(runner: _StubRunner) -> TestClient:
    return TestClient(create_app(lambda: runner))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_github_endpoint_returns_summary(client: TestClient, runner: _StubRunner) -> None:
    response = client.post(
        "/spider/github",
        json={"owner": "acme", "search": "widget", "workspace_id": "team", "update": True},
    )

    assert response.status_code == 200
    assert response.json() == {
        "repositoriesDetected": 2,
        "projectsDetected": 1,
        "failed": [{"repoUrl": "https://home", "whileTryingTo": "clone", "message": "cannot clone"}],
        "keptExisting": [],
        "persistedAnalyses": ["acme/widgets.json"],
    }
    request = runner.requests[0]
    assert (request.source, request.owner, request.search) == ("github", "acme", "widget")
    assert request.workspace_id == "team"
    assert request.update is True


def test_local_endpoint_passes_directory(client: TestClient, runner: _StubRunner, tmp_path: Path) -> None:
    response = client.post("/spider/local", json={"directory": str(tmp_path), "pool_size": 2})

    assert response.status_code == 200
    assert runner.requests[0].local_directory == tmp_path
    assert runner.requests[0].pool_size == 2


def test_github_endpoint_requires_owner_or_query(client: TestClient) -> None:
    response = client.post("/spider/github", json={"search": "widget"})

    assert response.status_code == 400


def test_enumeration_errors_map_to_bad_gateway(client: TestClient, runner: _StubRunner) -> None:
    runner.error = EnumerationError("GitHub search failed after retries")

    response = client.post("/spider/github", json={"owner": "acme"})

    assert response.status_code == 502
    assert "after retries" in response.json()["detail"]


def test_config_errors_map_to_bad_request(client: TestClient, runner: _StubRunner, tmp_path: Path) -> None:
    runner.error = ConfigError("pool_size must be a positive integer")

    response = client.post("/spider/local", json={"directory": str(tmp_path)})

    assert response.status_code == 400


def test_invalid_pool_size_is_rejected(client: TestClient) -> None:
    response = client.post("/spider/local", json={"directory": ".", "pool_size": 0})

    assert response.status_code == 422
