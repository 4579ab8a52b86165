"""Shared fixtures for services.discovery test package."""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from blossomwatch.services.discovery import Discovery, DiscoveryConfig


class FakeDirectory:
    """Relay directory endpoint with a scripted response.

    Attributes:
        payload: JSON value returned (ignored when ``raw_body`` is set).
        raw_body: Literal body bytes to return instead of ``payload``.
        status: HTTP status code.
        delay: Seconds to wait before responding.
        hits: Number of requests served.
    """

    def __init__(self) -> None:
        self.payload: Any = []
        self.raw_body: bytes | None = None
        self.status = 200
        self.delay = 0.0
        self.hits = 0

    async def handler(self, _request: web.Request) -> web.StreamResponse:
        self.hits += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_body is not None:
            return web.Response(body=self.raw_body, status=self.status)
        return web.json_response(self.payload, status=self.status)


@pytest.fixture
async def fake_directory() -> AsyncIterator[tuple[FakeDirectory, str]]:
    """Start a FakeDirectory and yield it with its URL."""
    directory = FakeDirectory()
    app = web.Application()
    app.router.add_get("/v1/online", directory.handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield directory, str(server.make_url("/v1/online"))
    finally:
        await server.close()


def make_discovery(tmp_path, **overrides: Any) -> Discovery:
    """Build a Discovery writing into *tmp_path* with the directory disabled."""
    data: dict[str, Any] = {
        "relays": {"core": ["wss://core-a.example.com", "wss://core-b.example.com"]},
        "directory": {"enabled": False},
        "query": {"timeout": 1.0, "concurrency": 2},
        "output": {"path": str(tmp_path / "BlossomListOutput.json")},
    }
    for section, values in overrides.items():
        if isinstance(values, dict):
            data.setdefault(section, {}).update(values)
        else:
            data[section] = values
    return Discovery(config=DiscoveryConfig(**data))
