from typing import Any, Optional

import aiohttp
from loguru import logger
from pydantic import TypeAdapter

from preview_waiter.errors import GitHubAPIError
from preview_waiter.models import Deployment, DeploymentStatus, PullRequest

DEFAULT_API_URL = "https://api.github.com"

_deployments = TypeAdapter(list[Deployment])
_statuses = TypeAdapter(list[DeploymentStatus])


class GitHubClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        token: str,
        owner: str,
        repo: str,
        api_url: Optional[str] = None,
    ):
        self.session = session
        self.owner = owner
        self.repo = repo
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.logger = logger

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """Issues an authenticated GET against the repository API and decodes the JSON body"""
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}{path}"

        try:
            async with self.session.get(
                url, params=params, headers=self.headers
            ) as response:
                response.raise_for_status()
                return await response.json()
        except aiohttp.ContentTypeError as e:
            raise GitHubAPIError(f"Non-JSON response from {url}") from e
        except aiohttp.ClientResponseError as e:
            self.logger.error(f"HTTP error {e.status} at {url}: {e.message}")
            raise
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            raise GitHubAPIError(f"Malformed JSON from {url}") from e

    async def list_deployments(
        self, sha: str, environment: Optional[str] = None
    ) -> list[Deployment]:
        """Lists deployments for a commit, optionally restricted to one environment"""
        params = {"sha": sha}
        if environment:
            params["environment"] = environment

        data = await self._get_json("/deployments", params)
        return _deployments.validate_python(data)

    async def list_deployment_statuses(
        self, deployment_id: int
    ) -> list[DeploymentStatus]:
        """Lists the statuses of a deployment, newest first"""
        data = await self._get_json(f"/deployments/{deployment_id}/statuses")
        return _statuses.validate_python(data)

    async def get_pull_request(self, number: int) -> PullRequest:
        data = await self._get_json(f"/pulls/{number}")
        return PullRequest.model_validate(data)
