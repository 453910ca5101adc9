import json
import os
from typing import Mapping, Optional

from loguru import logger

from preview_waiter.errors import ConfigurationError
from preview_waiter.models import TriggerContext


def _pull_request_number(event_path: Optional[str]) -> Optional[int]:
    """Reads pull_request.number from the webhook payload the runner saved to disk"""
    if not event_path or not os.path.exists(event_path):
        return None

    with open(event_path, encoding="utf-8") as f:
        payload = json.load(f)

    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")

    pull_request = payload.get("pull_request") or {}
    if not isinstance(pull_request, dict):
        raise ValueError("pull_request is not a JSON object")
    number = pull_request.get("number")
    if number is None:
        return None
    return int(number)


def trigger_context_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> TriggerContext:
    environ = os.environ if environ is None else environ

    repository = environ.get("GITHUB_REPOSITORY", "")
    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        raise ConfigurationError(
            f"GITHUB_REPOSITORY must look like owner/repo, got {repository!r}"
        )

    try:
        pr_number = _pull_request_number(environ.get("GITHUB_EVENT_PATH"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Unable to read the event payload: {e}") from e

    context = TriggerContext(
        owner=owner,
        repo=repo,
        sha=environ.get("GITHUB_SHA") or None,
        pr_number=pr_number,
        event_name=environ.get("GITHUB_EVENT_NAME") or None,
    )
    logger.debug(f"Trigger context {context!r}")
    return context
