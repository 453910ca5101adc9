import asyncio

import aiohttp

from preview_server import PreviewServer, ScriptedResponses, deployment_payload, status_payload
from preview_waiter.github_client import GitHubClient
from preview_waiter.models import PollConfig, TriggerContext
from preview_waiter.orchestrator import Stage, WaitOrchestrator


async def stage_changed(stage: Stage):
    print(f"Stage changed to: {stage.value}")


async def main():
    PORT = 8000
    SHA = "abc123"
    server = PreviewServer()
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    # The deployment shows up on the third listing, goes live on the second status check
    server.deployments = ScriptedResponses(
        [[], [], [deployment_payload(42, SHA, "bot-x")]]
    )
    server.statuses[42] = ScriptedResponses(
        [
            [status_payload(1, "pending")],
            [status_payload(2, "success", server.base_url), status_payload(1, "pending")],
        ]
    )
    server.site = ScriptedResponses([503, 200])

    context = TriggerContext(owner=server.owner, repo=server.repo, sha=SHA)
    config = PollConfig(max_timeout=10, interval_ms=500)

    async with aiohttp.ClientSession() as session:
        github = GitHubClient(
            session, "example-token", context.owner, context.repo, api_url=server.base_url
        )
        orchestrator = WaitOrchestrator(
            github,
            session,
            context,
            actor_name="bot-x",
            environment="preview",
            config=config,
            on_stage_change=stage_changed,
        )

        try:
            result = await orchestrator.run()
            print(f"url: {result.url}")
            print(f"host: {result.host}")
        except Exception as e:
            print(f"Error occurred: {e}")

    await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
