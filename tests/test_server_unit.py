"""Unit tests for the FastAPI server.

Generation is disabled through the environment so /api/enhance always
takes the rule-based path, and JiraClient is replaced by a fake that
records calls.
"""

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from jira_assist import main
from jira_assist.jira.client import JiraAPIError
from jira_assist.jira.models import CreatedComment, CreatedIssue, IssueTypeInfo, ProjectInfo


class FakeJiraClient:
    """Stands in for JiraClient; behaviour is set through class attributes."""

    calls: List[tuple] = []
    valid = True
    error: Optional[JiraAPIError] = None

    def __init__(self, config, timeout: float = 30.0, transport=None):
        self.config = config
        self.timeout = timeout

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    def _record(self, name: str, *args: Any) -> None:
        FakeJiraClient.calls.append((name, self.config.domain) + args)
        if FakeJiraClient.error is not None:
            raise FakeJiraClient.error

    async def validate_credentials(self) -> bool:
        FakeJiraClient.calls.append(("validate", self.config.domain))
        return FakeJiraClient.valid

    async def get_issue_types(self, project_key: str):
        self._record("issue_types", project_key)
        return [IssueTypeInfo(id="1", name="Bug"), IssueTypeInfo(id="2", name="Story")]

    async def list_projects(self):
        self._record("projects")
        return [ProjectInfo(id="100", key="PROJ", name="Project")]

    async def create_issue(self, request):
        self._record("create_issue", request.project_key, request.summary, request.issue_type)
        return CreatedIssue(key="PROJ-1", id="10001", url=self.config.browse_url("PROJ-1"))

    async def add_comment(self, issue_key: str, body: str):
        self._record("add_comment", issue_key, body)
        return CreatedComment(id="20001", issue_key=issue_key)


@pytest.fixture
def fake_jira(monkeypatch):
    FakeJiraClient.calls = []
    FakeJiraClient.valid = True
    FakeJiraClient.error = None
    monkeypatch.setattr(main, "JiraClient", FakeJiraClient)
    return FakeJiraClient


@pytest.fixture
def client(monkeypatch, fake_jira):
    monkeypatch.setenv("GENERATION_ENABLED", "false")
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def configured_client(monkeypatch, jira_env, fake_jira):
    monkeypatch.setenv("GENERATION_ENABLED", "false")
    with TestClient(main.app) as test_client:
        yield test_client


def _create_payload(**overrides) -> Dict[str, str]:
    payload = {
        "projectKey": "PROJ",
        "summary": "Fix login",
        "description": "Users cannot log in",
        "issueType": "Bug",
    }
    payload.update(overrides)
    return payload


class TestHealthAndMetrics:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics_exposed(self, client):
        client.post("/api/enhance", json={"description": "users cannot log in, please fix"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "jira_assist_enhancements_total" in response.text


class TestOllamaTest:

    def test_disabled_generation(self, client):
        response = client.get("/api/ollama-test")
        assert response.json() == {"running": False, "error": "Generation is disabled"}


class TestEnhance:

    def test_fallback_when_generation_disabled(self, client):
        response = client.post(
            "/api/enhance",
            json={"title": "", "description": "users cannot log in, please fix"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "fallback"
        assert body["suggestedType"] == "Bug"
        assert body["enhancedTitle"].startswith("Implement ")
        assert "Acceptance Criteria:" in body["enhancedDescription"]
        assert body["warning"] == "Generation service is disabled"

    @pytest.mark.parametrize("payload", [{}, {"title": "  ", "description": ""}, {"description": None}])
    def test_missing_title_and_description(self, client, payload):
        response = client.post("/api/enhance", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing title or description"


class TestConfig:

    def test_get_config_hides_token(self, configured_client):
        response = configured_client.get("/api/config")
        assert response.json() == {"domain": "acme", "email": "dev@acme.io", "hasToken": True}

    def test_get_config_unconfigured(self, client):
        assert client.get("/api/config").json() == {"domain": "", "email": "", "hasToken": False}

    def test_save_config(self, client, fake_jira):
        response = client.post(
            "/api/config",
            json={"domain": "other", "email": "me@other.io", "apiToken": "tok"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert fake_jira.calls == [("validate", "other")]
        assert client.get("/api/config").json()["domain"] == "other"

    def test_save_config_missing_fields(self, client):
        response = client.post("/api/config", json={"domain": "acme"})
        assert response.status_code == 400

    def test_save_config_invalid_credentials(self, client, fake_jira):
        fake_jira.valid = False

        response = client.post(
            "/api/config",
            json={"domain": "acme", "email": "me@acme.io", "apiToken": "wrong"},
        )

        assert response.status_code == 401

    def test_validate_unconfigured(self, client):
        assert client.post("/api/validate").status_code == 400

    def test_validate_configured(self, configured_client):
        response = configured_client.post("/api/validate")
        assert response.json() == {"valid": True}


class TestJiraEndpoints:

    def test_issue_types(self, configured_client, fake_jira):
        response = configured_client.get("/api/issue-types/PROJ")

        assert response.json() == {
            "issueTypes": [{"id": "1", "name": "Bug"}, {"id": "2", "name": "Story"}]
        }
        assert fake_jira.calls == [("issue_types", "acme", "PROJ")]

    def test_issue_types_unconfigured(self, client):
        assert client.get("/api/issue-types/PROJ").status_code == 400

    def test_projects(self, configured_client):
        response = configured_client.get("/api/projects")
        assert response.json() == {"projects": [{"id": "100", "key": "PROJ", "name": "Project"}]}

    def test_create_issue(self, configured_client, fake_jira):
        response = configured_client.post("/api/create-issue", json=_create_payload())

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "issue": {
                "key": "PROJ-1",
                "id": "10001",
                "url": "https://acme.atlassian.net/browse/PROJ-1",
            },
        }
        assert fake_jira.calls == [("create_issue", "acme", "PROJ", "Fix login", "Bug")]

    @pytest.mark.parametrize("missing", ["projectKey", "summary", "description", "issueType"])
    def test_create_issue_missing_field(self, configured_client, fake_jira, missing):
        response = configured_client.post("/api/create-issue", json=_create_payload(**{missing: ""}))

        assert response.status_code == 400
        assert fake_jira.calls == []

    def test_create_issue_unconfigured(self, client):
        response = client.post("/api/create-issue", json=_create_payload())
        assert response.status_code == 400

    def test_tracker_error_is_500_with_message(self, configured_client, fake_jira):
        fake_jira.error = JiraAPIError("Project PROJ does not exist", status_code=400)

        response = configured_client.post("/api/create-issue", json=_create_payload())

        assert response.status_code == 500
        assert response.json()["detail"] == "Project PROJ does not exist"

    def test_add_comment(self, configured_client, fake_jira):
        response = configured_client.post(
            "/api/issues/PROJ-1/comments",
            json={"body": "Deployed to staging"},
        )

        assert response.json() == {
            "success": True,
            "comment": {"id": "20001", "issueKey": "PROJ-1"},
        }
        assert fake_jira.calls == [("add_comment", "acme", "PROJ-1", "Deployed to staging")]

    def test_add_empty_comment(self, configured_client):
        response = configured_client.post("/api/issues/PROJ-1/comments", json={"body": " "})
        assert response.status_code == 400
