import math
import os
from typing import Mapping, Optional

from pydantic import BaseModel

from preview_waiter.errors import ConfigurationError
from preview_waiter.models import PollConfig

TRUE_VALUES = ("true", "True", "TRUE")
FALSE_VALUES = ("false", "False", "FALSE")


def get_input(environ: Mapping[str, str], name: str) -> Optional[str]:
    """Reads an action input the way the runner exposes it: INPUT_<NAME>, blank meaning unset"""
    value = environ.get(f"INPUT_{name.replace(' ', '_').upper()}", "").strip()
    return value or None


def _positive_number(name: str, raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if not math.isfinite(value):
        raise ConfigurationError(f"Input `{name}` must be a finite number, got {raw}")
    if value < 0:
        raise ConfigurationError(f"Input `{name}` must not be negative, got {raw}")
    return value or default


def _boolean(name: str, raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Input `{name}` must be one of true/false (case variants allowed), got {raw}"
    )


class ActionInputs(BaseModel):
    token: str
    actor_name: str
    environment: Optional[str] = None
    max_timeout: float = 60.0  # seconds, per stage
    allow_inactive: bool = False
    path: str = "/"
    check_interval: float = 2.0  # seconds
    api_url: Optional[str] = None

    def poll_config(self) -> PollConfig:
        return PollConfig(
            max_timeout=self.max_timeout,
            interval_ms=round(self.check_interval * 1000),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ActionInputs":
        environ = os.environ if environ is None else environ

        token = get_input(environ, "token")
        if not token:
            raise ConfigurationError("Required field `token` was not provided")

        actor_name = get_input(environ, "actor_name")
        if not actor_name:
            raise ConfigurationError("Required field `actor_name` was not provided")

        check_interval = _positive_number(
            "check_interval", get_input(environ, "check_interval"), 2.0
        )
        if round(check_interval * 1000) == 0:
            raise ConfigurationError(
                f"Input `check_interval` must be at least one millisecond, got {check_interval}"
            )

        return cls(
            token=token,
            actor_name=actor_name,
            environment=get_input(environ, "environment"),
            max_timeout=_positive_number(
                "max_timeout", get_input(environ, "max_timeout"), 60.0
            ),
            allow_inactive=_boolean(
                "allow_inactive", get_input(environ, "allow_inactive"), False
            ),
            path=get_input(environ, "path") or "/",
            check_interval=check_interval,
            api_url=environ.get("GITHUB_API_URL") or None,
        )
