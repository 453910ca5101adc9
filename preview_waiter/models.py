from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, field_validator

T = TypeVar("T")


def calculate_iterations(max_timeout: float, interval_ms: int) -> int:
    """Converts a timeout in seconds and an interval in milliseconds into a number of poll attempts"""
    return int(max_timeout * 1000 // interval_ms)


class PollConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_timeout: float = 60.0
    interval_ms: int = 2000

    @property
    def iterations(self) -> int:
        return calculate_iterations(self.max_timeout, self.interval_ms)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000


class GitHubUser(BaseModel):
    login: str


class Deployment(BaseModel):
    id: int
    sha: str
    environment: str
    creator: Optional[GitHubUser] = None


class DeploymentState(str, Enum):
    error = "error"
    failure = "failure"
    inactive = "inactive"
    in_progress = "in_progress"
    queued = "queued"
    pending = "pending"
    success = "success"


class DeploymentStatus(BaseModel):
    id: int
    state: DeploymentState
    environment_url: Optional[str] = None
    description: Optional[str] = None

    @field_validator("environment_url")
    @classmethod
    def _blank_url_is_missing(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class PullRequestHead(BaseModel):
    sha: str
    ref: str


class PullRequest(BaseModel):
    number: int
    head: PullRequestHead


class TriggerContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    sha: Optional[str] = None
    pr_number: Optional[int] = None
    event_name: Optional[str] = None


class WaitResult(BaseModel):
    url: str
    host: str
    deployment_id: int
    state: DeploymentState


# Result of a single poll attempt


@dataclass(frozen=True)
class Ready(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotYetReady:
    reason: str


@dataclass(frozen=True)
class FetchError:
    error: BaseException


AttemptResult = Union[Ready[T], NotYetReady, FetchError]


# Result of a whole poll loop


@dataclass(frozen=True)
class PollSuccess(Generic[T]):
    value: T
    attempts: int


@dataclass(frozen=True)
class PollTimeout:
    iterations: int


PollOutcome = Union[PollSuccess[T], PollTimeout]
