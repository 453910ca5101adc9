import asyncio
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urljoin

import aiohttp
from loguru import logger

from preview_waiter.errors import RECOVERABLE_ERRORS
from preview_waiter.github_client import GitHubClient
from preview_waiter.models import (
    AttemptResult,
    Deployment,
    DeploymentState,
    DeploymentStatus,
    FetchError,
    NotYetReady,
    PollConfig,
    PollOutcome,
    PollSuccess,
    PollTimeout,
    Ready,
)


class BoundedPoller:
    """Runs a check a fixed number of times, sleeping one interval after every miss.

    The number of attempts is taken from the config once, before the first
    attempt. It is an attempt budget, not a deadline: a slow request makes the
    loop run longer than ``max_timeout``.
    """

    def __init__(self, config: Optional[PollConfig] = None):
        self.config = config or PollConfig()
        self.logger = logger

    async def _wait_before_retry(self) -> None:
        await asyncio.sleep(self.config.interval_seconds)

    def _describe_error(self, error: BaseException) -> str:
        return f"{type(error).__name__}: {error}"

    async def _poll(self, check: Callable[[], Awaitable[AttemptResult]]) -> PollOutcome:
        """Calls ``check`` until it reports Ready or the attempt budget runs out"""
        iterations = self.config.iterations

        for attempt in range(1, iterations + 1):
            try:
                result = await check()
            except RECOVERABLE_ERRORS as e:
                result = FetchError(e)

            if isinstance(result, Ready):
                return PollSuccess(value=result.value, attempts=attempt)

            if isinstance(result, NotYetReady):
                self.logger.info(
                    f"{result.reason}, retrying (attempt {attempt} / {iterations})"
                )
            else:
                self.logger.warning(
                    f"{self._describe_error(result.error)}, retrying "
                    f"(attempt {attempt} / {iterations})"
                )

            await self._wait_before_retry()

        return PollTimeout(iterations=iterations)


class DeploymentDiscoveryPoller(BoundedPoller):
    """Waits for the deployment an actor creates for a commit.

    This process may start before the actor's own workflow has created the
    deployment, so an empty list is expected for the first few attempts.
    """

    def __init__(self, github: GitHubClient, config: Optional[PollConfig] = None):
        super().__init__(config)
        self.github = github

    async def _check_once(
        self, sha: str, environment: Optional[str], actor_name: str
    ) -> AttemptResult[Deployment]:
        deployments = await self.github.list_deployments(sha, environment)

        for deployment in deployments:
            if deployment.creator is not None and deployment.creator.login == actor_name:
                self.logger.debug(f"Found deployment {deployment!r}")
                return Ready(deployment)

        return NotYetReady(f"Could not find any deployments for actor {actor_name}")

    def _describe_error(self, error: BaseException) -> str:
        return f"Error while fetching deployments ({error})"

    async def find(
        self, sha: str, environment: Optional[str], actor_name: str
    ) -> Optional[Deployment]:
        """Returns the first deployment created by ``actor_name``, or None once the budget is spent"""
        outcome = await self._poll(
            lambda: self._check_once(sha, environment, actor_name)
        )

        if isinstance(outcome, PollTimeout):
            self.logger.warning(
                f"No deployment by {actor_name} for {sha} after {outcome.iterations} attempts"
            )
            return None

        self.logger.info(
            f"Deployment {outcome.value.id} found after {outcome.attempts} attempt(s)"
        )
        return outcome.value


class DeploymentStatusPoller(BoundedPoller):
    def __init__(
        self,
        github: GitHubClient,
        config: Optional[PollConfig] = None,
        allow_inactive: bool = False,
        on_status_change: Optional[Callable[[DeploymentStatus], Any]] = None,
    ):
        super().__init__(config)
        self.github = github
        self.allow_inactive = allow_inactive
        self.on_status_change = on_status_change
        self._last_state: Optional[DeploymentState] = None

    async def _handle_status_change(self, status: DeploymentStatus) -> None:
        """Invoke the status change callback if the latest state has changed"""
        if status.state != self._last_state:
            self.logger.debug(f"Deployment state changed to {status.state.value}")
            self._last_state = status.state
            if self.on_status_change is not None:
                await self.on_status_change(status)

    async def _check_once(self, deployment_id: int) -> AttemptResult[DeploymentStatus]:
        statuses = await self.github.list_deployment_statuses(deployment_id)

        if not statuses:
            return NotYetReady("No status was available")

        # GitHub lists statuses newest first; older entries are history
        status = statuses[0]
        self.logger.debug(f"Latest status {status!r}")
        await self._handle_status_change(status)

        if self.allow_inactive and status.state == DeploymentState.inactive:
            return Ready(status)
        if status.state != DeploymentState.success:
            return NotYetReady(
                f"Deployment {deployment_id} is {status.state.value}, not success"
            )
        return Ready(status)

    def _describe_error(self, error: BaseException) -> str:
        return f"Deployment status unavailable ({error})"

    async def wait(self, deployment_id: int) -> PollOutcome[DeploymentStatus]:
        """Polls the deployment's latest status until it is success (or inactive, when allowed)"""
        self._last_state = None
        return await self._poll(lambda: self._check_once(deployment_id))


class UrlReachabilityPoller(BoundedPoller):
    def __init__(
        self, session: aiohttp.ClientSession, config: Optional[PollConfig] = None
    ):
        super().__init__(config)
        self.session = session

    async def _check_once(self, url: str) -> AttemptResult[int]:
        async with self.session.get(url, raise_for_status=True) as response:
            return Ready(response.status)

    def _describe_error(self, error: BaseException) -> str:
        # https://docs.aiohttp.org/en/stable/client_reference.html#hierarchy-of-exceptions
        if isinstance(error, aiohttp.ClientResponseError):
            return f"GET status: {error.status}"
        if isinstance(error, (aiohttp.ClientConnectionError, asyncio.TimeoutError)):
            return f"GET error. A request was made, but no response was received ({error!r})"
        return f"GET error ({error!r})"

    async def wait(self, url: str, path: str = "/") -> PollOutcome[int]:
        """Polls ``path`` on ``url`` until a GET comes back without an error status"""
        check_url = urljoin(url, path)
        self.logger.info(f"Waiting for a success status code from {check_url}")

        outcome = await self._poll(lambda: self._check_once(check_url))
        if isinstance(outcome, PollSuccess):
            self.logger.info(f"Received status {outcome.value} from {check_url}")
        return outcome
