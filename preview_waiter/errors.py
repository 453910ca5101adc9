import asyncio

import aiohttp
from pydantic import ValidationError


class GitHubAPIError(Exception):
    """The GitHub API answered with a payload the client cannot use"""


class WaitError(Exception):
    """A fatal condition that ends the wait"""


class ConfigurationError(WaitError):
    pass


class CommitResolutionError(WaitError):
    pass


class DeploymentNotFoundError(WaitError):
    pass


class DeploymentStatusTimeoutError(WaitError):
    pass


class MissingEnvironmentUrlError(WaitError):
    pass


class UrlUnreachableError(WaitError):
    pass


# Errors that only cost a poll attempt
RECOVERABLE_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ValidationError,
    GitHubAPIError,
)
