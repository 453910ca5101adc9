from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import aiohttp
from loguru import logger

from preview_waiter.errors import (
    RECOVERABLE_ERRORS,
    CommitResolutionError,
    DeploymentNotFoundError,
    DeploymentStatusTimeoutError,
    MissingEnvironmentUrlError,
    UrlUnreachableError,
    WaitError,
)
from preview_waiter.github_client import GitHubClient
from preview_waiter.models import (
    Deployment,
    DeploymentStatus,
    PollConfig,
    PollTimeout,
    TriggerContext,
    WaitResult,
)
from preview_waiter.pollers import (
    DeploymentDiscoveryPoller,
    DeploymentStatusPoller,
    UrlReachabilityPoller,
)


class Stage(str, Enum):
    resolve_commit = "resolve_commit"
    discover_deployment = "discover_deployment"
    await_status = "await_status"
    await_reachable = "await_reachable"
    succeeded = "succeeded"
    failed = "failed"


def host_of(url: str) -> str:
    """Returns the lowercased host[:port] of a URL, without user info"""
    parts = urlsplit(url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return host


class WaitOrchestrator:
    """Sequences commit resolution, deployment discovery, status polling and
    the reachability check for one preview.

    Stages run strictly in order; each one is fatal on failure and nothing is
    retried across stages.
    """

    def __init__(
        self,
        github: GitHubClient,
        session: aiohttp.ClientSession,
        context: TriggerContext,
        actor_name: str,
        environment: Optional[str] = None,
        config: Optional[PollConfig] = None,
        allow_inactive: bool = False,
        path: str = "/",
        on_stage_change: Optional[Callable[[Stage], Any]] = None,
    ):
        self.github = github
        self.session = session
        self.context = context
        self.actor_name = actor_name
        self.environment = environment
        self.config = config or PollConfig()
        self.allow_inactive = allow_inactive
        self.path = path
        self.on_stage_change = on_stage_change
        self.stage: Optional[Stage] = None
        self.failure: Optional[WaitError] = None
        self.failed_stage: Optional[Stage] = None
        self.logger = logger

    async def _enter(self, stage: Stage) -> None:
        self.stage = stage
        self.logger.debug(f"Entering stage {stage.value}")
        if self.on_stage_change is not None:
            await self.on_stage_change(stage)

    async def resolve_commit(self) -> str:
        """Picks the head commit of the triggering pull request, or the pushed commit"""
        if self.context.pr_number is not None:
            try:
                pull = await self.github.get_pull_request(self.context.pr_number)
            except RECOVERABLE_ERRORS as e:
                raise CommitResolutionError(
                    f"Could not get information about pull request #{self.context.pr_number}: {e}"
                ) from e
            return pull.head.sha

        if self.context.sha:
            return self.context.sha

        raise CommitResolutionError("Unable to determine SHA. Exiting...")

    async def discover_deployment(self, sha: str) -> Deployment:
        poller = DeploymentDiscoveryPoller(self.github, self.config)
        deployment = await poller.find(sha, self.environment, self.actor_name)

        if deployment is None:
            raise DeploymentNotFoundError(
                f"No deployment by {self.actor_name} found for {sha}, exiting..."
            )
        return deployment

    async def await_status(self, deployment: Deployment) -> DeploymentStatus:
        poller = DeploymentStatusPoller(
            self.github, self.config, allow_inactive=self.allow_inactive
        )
        outcome = await poller.wait(deployment.id)

        if isinstance(outcome, PollTimeout):
            raise DeploymentStatusTimeoutError(
                f"Timeout reached: Unable to wait for deployment {deployment.id} to be successful"
            )
        return outcome.value

    async def await_reachable(self, url: str) -> None:
        poller = UrlReachabilityPoller(self.session, self.config)
        outcome = await poller.wait(url, self.path)

        if isinstance(outcome, PollTimeout):
            raise UrlUnreachableError(f"Timeout reached: Unable to connect to {url}")

    async def _run_stages(self) -> WaitResult:
        await self._enter(Stage.resolve_commit)
        sha = await self.resolve_commit()
        self.logger.info(f"Waiting for deployments of {sha}")

        await self._enter(Stage.discover_deployment)
        deployment = await self.discover_deployment(sha)

        await self._enter(Stage.await_status)
        status = await self.await_status(deployment)

        target_url = status.environment_url
        if not target_url:
            raise MissingEnvironmentUrlError(
                f"No environment_url found in the status of deployment {deployment.id}"
            )
        target_host = host_of(target_url)
        self.logger.info(f"target url » {target_url}")
        self.logger.info(f"target host » {target_host}")

        await self._enter(Stage.await_reachable)
        await self.await_reachable(target_url)

        await self._enter(Stage.succeeded)
        return WaitResult(
            url=target_url,
            host=target_host,
            deployment_id=deployment.id,
            state=status.state,
        )

    async def run(self) -> WaitResult:
        """Runs every stage in order, raising the WaitError of the first one that fails"""
        try:
            return await self._run_stages()
        except WaitError as e:
            self.failure = e
            self.failed_stage = self.stage
            await self._enter(Stage.failed)
            self.logger.error(f"Stage {self.failed_stage.value} failed: {e}")
            raise
