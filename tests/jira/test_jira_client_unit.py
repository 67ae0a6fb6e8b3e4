"""Unit tests for the Jira REST client and ADF conversion."""

import asyncio
import base64
import json
from typing import Callable, List

import httpx
import pytest
from pydantic import ValidationError

from jira_assist.jira.client import JiraAPIError, JiraClient, JiraConfigError
from jira_assist.jira.models import (
    CreatedIssue,
    IssueCreateRequest,
    JiraConfig,
    to_adf,
)


def run_async(coro):
    return asyncio.run(coro)


CONFIG = JiraConfig(domain="acme", email="dev@acme.io", api_token="secret-token")


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    requests: List[httpx.Request] = None,
    config: JiraConfig = CONFIG,
) -> JiraClient:
    def wrapper(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    return JiraClient(config, transport=httpx.MockTransport(wrapper))


def _issue_request(**overrides) -> IssueCreateRequest:
    fields = {
        "project_key": "PROJ",
        "summary": "Fix login",
        "description": "Users cannot log in",
        "issue_type": "Bug",
    }
    fields.update(overrides)
    return IssueCreateRequest(**fields)


class TestJiraConfig:

    def test_site_name_becomes_atlassian_url(self):
        assert CONFIG.base_url == "https://acme.atlassian.net"

    def test_full_url_is_kept(self):
        config = JiraConfig(domain="https://jira.internal.example/", email="a", api_token="b")
        assert config.base_url == "https://jira.internal.example"

    def test_browse_url(self):
        assert CONFIG.browse_url("PROJ-7") == "https://acme.atlassian.net/browse/PROJ-7"

    def test_incomplete(self):
        assert JiraConfig(domain="acme", email="dev@acme.io").is_complete is False
        assert JiraConfig(domain=" ", email="a", api_token="b").is_complete is False

    def test_complete(self):
        assert CONFIG.is_complete is True


class TestIssueCreateRequest:

    def test_blank_summary_rejected(self):
        with pytest.raises(ValidationError):
            _issue_request(summary="   ")

    def test_fields_payload(self):
        fields = _issue_request().to_jira_fields()

        assert fields["project"] == {"key": "PROJ"}
        assert fields["summary"] == "Fix login"
        assert fields["issuetype"] == {"name": "Bug"}
        assert fields["description"]["type"] == "doc"


class TestAdf:

    def test_paragraphs_and_hard_breaks(self):
        doc = to_adf("First line\nsecond line\n\nSecond paragraph")

        assert doc["version"] == 1
        assert doc["type"] == "doc"
        assert doc["content"] == [
            {
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "First line"},
                    {"type": "hardBreak"},
                    {"type": "text", "text": "second line"},
                ],
            },
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": "Second paragraph"}],
            },
        ]

    def test_multiple_blank_lines_are_one_break(self):
        doc = to_adf("One\n\n\n\nTwo\r\n\r\nThree")
        assert len(doc["content"]) == 3

    def test_empty_text(self):
        assert to_adf("")["content"] == []


class TestValidateCredentials:

    def test_valid(self):
        requests: List[httpx.Request] = []
        client = _client(lambda request: httpx.Response(200, json={"accountId": "1"}), requests)

        assert run_async(client.validate_credentials()) is True

        request = requests[0]
        assert str(request.url) == "https://acme.atlassian.net/rest/api/3/myself"
        expected = base64.b64encode(b"dev@acme.io:secret-token").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    def test_invalid(self):
        client = _client(lambda request: httpx.Response(401, text="Unauthorized"))
        assert run_async(client.validate_credentials()) is False

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        assert run_async(_client(handler).validate_credentials()) is False

    def test_incomplete_config(self):
        client = _client(
            lambda request: httpx.Response(200),
            config=JiraConfig(domain="acme"),
        )
        assert run_async(client.validate_credentials()) is False


class TestCreateIssue:

    def test_creates_issue(self):
        requests: List[httpx.Request] = []
        client = _client(
            lambda request: httpx.Response(
                201,
                json={"id": "10001", "key": "PROJ-1", "self": "https://acme.atlassian.net/rest/api/3/issue/10001"},
            ),
            requests,
        )

        issue = run_async(client.create_issue(_issue_request()))

        assert issue == CreatedIssue(
            key="PROJ-1",
            id="10001",
            url="https://acme.atlassian.net/browse/PROJ-1",
        )
        body = json.loads(requests[0].content)
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/rest/api/3/issue"
        assert body["fields"]["project"] == {"key": "PROJ"}
        assert body["fields"]["issuetype"] == {"name": "Bug"}
        assert body["fields"]["description"] == to_adf("Users cannot log in")

    def test_error_messages_entry_is_used(self):
        client = _client(
            lambda request: httpx.Response(
                400,
                json={"errorMessages": ["Project PROJ does not exist"], "errors": {}},
            )
        )

        with pytest.raises(JiraAPIError) as exc_info:
            run_async(client.create_issue(_issue_request()))

        assert exc_info.value.message == "Project PROJ does not exist"
        assert exc_info.value.status_code == 400

    def test_field_error_is_used(self):
        client = _client(
            lambda request: httpx.Response(
                400,
                json={"errorMessages": [], "errors": {"issuetype": "Specify a valid issue type"}},
            )
        )

        with pytest.raises(JiraAPIError, match="Specify a valid issue type"):
            run_async(client.create_issue(_issue_request(issue_type="Nope")))

    def test_status_when_body_is_not_json(self):
        client = _client(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(JiraAPIError) as exc_info:
            run_async(client.create_issue(_issue_request()))

        assert exc_info.value.message == "Jira error 502"
        assert exc_info.value.response_body == "Bad Gateway"

    def test_no_retry_on_server_error(self):
        requests: List[httpx.Request] = []
        client = _client(lambda request: httpx.Response(503), requests)

        with pytest.raises(JiraAPIError):
            run_async(client.create_issue(_issue_request()))

        assert len(requests) == 1

    def test_incomplete_config_raises_before_request(self):
        requests: List[httpx.Request] = []
        client = _client(lambda request: httpx.Response(201), requests, config=JiraConfig())

        with pytest.raises(JiraConfigError):
            run_async(client.create_issue(_issue_request()))

        assert requests == []


class TestListings:

    def test_issue_types(self):
        requests: List[httpx.Request] = []
        payload = {
            "values": [
                {"id": "10001", "name": "Bug", "subtask": False},
                {"id": "10002", "name": "Story"},
            ]
        }
        client = _client(lambda request: httpx.Response(200, json=payload), requests)

        types = run_async(client.get_issue_types("PROJ"))

        assert [(t.id, t.name) for t in types] == [("10001", "Bug"), ("10002", "Story")]
        assert requests[0].url.path == "/rest/api/3/issuetype/search"
        assert requests[0].url.params["projectKey"] == "PROJ"

    def test_issue_types_bare_list(self):
        client = _client(lambda request: httpx.Response(200, json=[{"id": 3, "name": "Task"}]))

        types = run_async(client.get_issue_types("PROJ"))

        assert [(t.id, t.name) for t in types] == [("3", "Task")]

    def test_projects(self):
        payload = {
            "values": [
                {"id": "100", "key": "PROJ", "name": "Project"},
                {"id": "101", "name": "Missing key"},
            ]
        }
        client = _client(lambda request: httpx.Response(200, json=payload))

        projects = run_async(client.list_projects())

        assert [(p.id, p.key, p.name) for p in projects] == [("100", "PROJ", "Project")]

    def test_get_issue(self):
        payload = {"key": "PROJ-1", "fields": {"summary": "Fix login"}}
        client = _client(lambda request: httpx.Response(200, json=payload))

        assert run_async(client.get_issue("PROJ-1")) == payload

    def test_get_missing_issue(self):
        client = _client(
            lambda request: httpx.Response(
                404, json={"errorMessages": ["Issue does not exist or you do not have permission to see it."]}
            )
        )

        with pytest.raises(JiraAPIError, match="Issue does not exist") as exc_info:
            run_async(client.get_issue("PROJ-404"))

        assert exc_info.value.status_code == 404


class TestComments:

    def test_add_comment(self):
        requests: List[httpx.Request] = []
        client = _client(lambda request: httpx.Response(201, json={"id": "20001"}), requests)

        comment = run_async(client.add_comment("PROJ-1", "Deployed to staging"))

        assert comment.id == "20001"
        assert comment.issue_key == "PROJ-1"
        assert comment.to_dict() == {"id": "20001", "issueKey": "PROJ-1"}
        assert requests[0].url.path == "/rest/api/3/issue/PROJ-1/comment"
        assert json.loads(requests[0].content) == {"body": to_adf("Deployed to staging")}

    def test_comment_response_without_id(self):
        client = _client(lambda request: httpx.Response(201, json={}))

        with pytest.raises(JiraAPIError, match="missing id"):
            run_async(client.add_comment("PROJ-1", "Hello"))
