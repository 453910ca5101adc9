from typing import Any, Optional

from aiohttp import web
from loguru import logger


def deployment_payload(
    deployment_id: int, sha: str, creator: Optional[str], environment: str = "preview"
) -> dict:
    return {
        "id": deployment_id,
        "sha": sha,
        "ref": "main",
        "environment": environment,
        "creator": {"login": creator} if creator else None,
    }


def status_payload(status_id: int, state: str, environment_url: str = "") -> dict:
    return {
        "id": status_id,
        "state": state,
        "environment_url": environment_url,
        "description": f"Deployment {state}",
    }


def pull_payload(number: int, sha: str, ref: str = "feature") -> dict:
    return {"number": number, "head": {"sha": sha, "ref": ref}}


class ScriptedResponses:
    """Hands out one entry per request; the last entry keeps repeating"""

    def __init__(self, entries: Optional[list] = None):
        self.entries = list(entries or [])
        self.calls = 0

    def next(self) -> Any:
        self.calls += 1
        if not self.entries:
            return None
        if len(self.entries) > 1:
            return self.entries.pop(0)
        return self.entries[0]


class PreviewServer:
    """Stands in for the GitHub deployments API and for the deployed preview site.

    Integer entries in a script are answered as that HTTP status, bytes are
    sent verbatim as an application/json body, anything else is serialised
    to JSON.
    """

    def __init__(self, owner: str = "octo-org", repo: str = "preview-app"):
        self.owner = owner
        self.repo = repo
        self.port: Optional[int] = None
        self.deployments = ScriptedResponses([[]])
        self.statuses: dict[int, ScriptedResponses] = {}
        self.pulls: dict[int, dict] = {}
        self.site = ScriptedResponses([200])
        self.requests: list[tuple[str, dict, Optional[str]]] = []
        self.app = web.Application(middlewares=[self._record])

        prefix = f"/repos/{owner}/{repo}"
        self.app.router.add_get(f"{prefix}/deployments", self.handle_deployments)
        self.app.router.add_get(
            f"{prefix}/deployments/{{deployment_id}}/statuses", self.handle_statuses
        )
        self.app.router.add_get(f"{prefix}/pulls/{{number}}", self.handle_pull)
        self.app.router.add_get("/{tail:.*}", self.handle_site)

        self.runner: Optional[web.AppRunner] = None
        self.logger = logger

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.port}"

    @web.middleware
    async def _record(self, request: web.Request, handler):
        self.requests.append(
            (request.path, dict(request.query), request.headers.get("Authorization"))
        )
        return await handler(request)

    def requests_to(self, path_prefix: str) -> list[tuple[str, dict, Optional[str]]]:
        return [r for r in self.requests if r[0].startswith(path_prefix)]

    def _json_or_error(self, entry: Any) -> web.Response:
        if isinstance(entry, int):
            self.logger.info(f"Returning scripted error {entry}")
            return web.json_response({"message": "Scripted failure"}, status=entry)
        if isinstance(entry, bytes):
            return web.Response(body=entry, content_type="application/json")
        return web.json_response(entry)

    async def handle_deployments(self, request: web.Request) -> web.Response:
        entry = self.deployments.next()
        if isinstance(entry, list):
            sha = request.query.get("sha")
            environment = request.query.get("environment")
            entry = [
                d
                for d in entry
                if (sha is None or d["sha"] == sha)
                and (environment is None or d["environment"] == environment)
            ]
            self.logger.info(f"Returning {len(entry)} deployment(s)")
        return self._json_or_error(entry)

    async def handle_statuses(self, request: web.Request) -> web.Response:
        deployment_id = int(request.match_info["deployment_id"])
        script = self.statuses.get(deployment_id)
        if script is None:
            return web.json_response({"message": "Not Found"}, status=404)
        return self._json_or_error(script.next())

    async def handle_pull(self, request: web.Request) -> web.Response:
        pull = self.pulls.get(int(request.match_info["number"]))
        if pull is None:
            return web.json_response({"message": "Not Found"}, status=404)
        return web.json_response(pull)

    async def handle_site(self, request: web.Request) -> web.Response:
        status = self.site.next()
        self.logger.info(f"Preview site answering {request.path} with {status}")
        return web.Response(status=status, text=f"preview {status}")

    async def start(self, port: int = 8080) -> web.TCPSite:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.port = port
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
