import aiohttp
import pytest
from pydantic import ValidationError

from preview_server import (
    ScriptedResponses,
    deployment_payload,
    pull_payload,
    status_payload,
)
from preview_waiter.errors import GitHubAPIError
from preview_waiter.models import DeploymentState


@pytest.mark.asyncio
async def test_list_deployments_sends_filters_and_token(server, github):
    server.deployments = ScriptedResponses([[deployment_payload(1, "abc123", "bot-x")]])

    deployments = await github.list_deployments("abc123", "preview")

    assert [d.id for d in deployments] == [1]
    assert deployments[0].creator.login == "bot-x"
    path, query, authorization = server.requests[0]
    assert path == "/repos/octo-org/preview-app/deployments"
    assert query == {"sha": "abc123", "environment": "preview"}
    assert authorization == "Bearer test-token"


@pytest.mark.asyncio
async def test_list_deployments_without_environment(server, github):
    await github.list_deployments("abc123")

    assert server.requests[0][1] == {"sha": "abc123"}


@pytest.mark.asyncio
async def test_list_deployment_statuses(server, github):
    server.statuses[42] = ScriptedResponses(
        [[status_payload(2, "success", "https://x.example.com"), status_payload(1, "pending")]]
    )

    statuses = await github.list_deployment_statuses(42)

    assert [s.state for s in statuses] == [DeploymentState.success, DeploymentState.pending]
    assert statuses[0].environment_url == "https://x.example.com"
    assert statuses[1].environment_url is None


@pytest.mark.asyncio
async def test_get_pull_request(server, github):
    server.pulls[7] = pull_payload(7, "def456")

    pull = await github.get_pull_request(7)

    assert pull.head.sha == "def456"


@pytest.mark.asyncio
async def test_http_errors_are_raised(server, github):
    with pytest.raises(aiohttp.ClientResponseError) as exc_info:
        await github.get_pull_request(404)

    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_missing_fields_fail_validation(server, github):
    server.deployments = ScriptedResponses([[{"id": 1, "sha": "abc123"}]])

    with pytest.raises(ValidationError):
        await github.list_deployments("abc123")


@pytest.mark.asyncio
async def test_undecodable_json_is_an_api_error(server, github):
    server.deployments = ScriptedResponses([b'[{"id": 1, "sha": "abc'])

    with pytest.raises(GitHubAPIError, match="Malformed JSON"):
        await github.list_deployments("abc123")
