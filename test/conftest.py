from typing import AsyncGenerator

import aiohttp
import pytest
import pytest_asyncio

from preview_server import PreviewServer
from preview_waiter.github_client import GitHubClient
from preview_waiter.models import PollConfig


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[PreviewServer, None]:
    """Start and yield a PreviewServer on a random port."""
    server_instance = PreviewServer()
    await server_instance.start(port=unused_tcp_port_factory())
    try:
        yield server_instance
    finally:
        await server_instance.stop()


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[aiohttp.ClientSession, None]:
    async with aiohttp.ClientSession() as client_session:
        yield client_session


@pytest.fixture
def github(server, session) -> GitHubClient:
    return GitHubClient(
        session, "test-token", server.owner, server.repo, api_url=server.base_url
    )


@pytest.fixture
def config() -> PollConfig:
    """Ten attempts, 10ms apart."""
    return PollConfig(max_timeout=0.1, interval_ms=10)
