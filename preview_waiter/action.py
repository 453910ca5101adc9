import asyncio
import os
import sys
from typing import Mapping, Optional

import aiohttp
from loguru import logger

from preview_waiter.config import ActionInputs
from preview_waiter.context import trigger_context_from_env
from preview_waiter.errors import WaitError
from preview_waiter.github_client import GitHubClient
from preview_waiter.models import TriggerContext, WaitResult
from preview_waiter.orchestrator import WaitOrchestrator
from preview_waiter.outputs import set_failed, set_output


def configure_logging(environ: Mapping[str, str]) -> None:
    """Send loguru output to stderr, at DEBUG when the runner has debug logging on"""
    level = "DEBUG" if environ.get("RUNNER_DEBUG") == "1" else "INFO"
    logger.remove()
    logger.add(sys.stderr, level=level, format="{time:HH:mm:ss} | {level: <7} | {message}")


async def wait_for_preview(
    inputs: ActionInputs, context: TriggerContext
) -> WaitResult:
    async with aiohttp.ClientSession() as session:
        github = GitHubClient(
            session, inputs.token, context.owner, context.repo, api_url=inputs.api_url
        )
        orchestrator = WaitOrchestrator(
            github,
            session,
            context,
            actor_name=inputs.actor_name,
            environment=inputs.environment,
            config=inputs.poll_config(),
            allow_inactive=inputs.allow_inactive,
            path=inputs.path,
        )
        return await orchestrator.run()


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    environ = os.environ if environ is None else environ
    configure_logging(environ)

    try:
        inputs = ActionInputs.from_env(environ)
        context = trigger_context_from_env(environ)
        result = asyncio.run(wait_for_preview(inputs, context))
    except WaitError as e:
        set_failed(str(e))
        return 1
    except Exception as e:
        logger.exception("Unexpected error while waiting for the preview")
        set_failed(f"Unexpected error: {e}")
        return 1

    set_output("url", result.url, environ)
    set_output("host", result.host, environ)
    return 0
