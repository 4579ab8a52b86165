"""
Pytest configuration and shared fixtures for blossomwatch tests.

Provides:
- Announcement event builders
- ServerRecord factories
- A fake in-process Nostr relay built on ``aiohttp.web``
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from blossomwatch.models.server import ServerRecord


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Sample Data
# ============================================================================


def make_event(
    url: Any = "https://cdn.example.com",
    *,
    created_at: Any = 1_700_000_000,
    pubkey: Any = "a" * 64,
    event_id: Any = "b" * 64,
    name: str | None = None,
    description: str | None = None,
    extra_tags: list[Any] | None = None,
) -> dict[str, Any]:
    """Build a raw kind 36363 announcement event."""
    tags: list[Any] = [["d", url]]
    if name is not None:
        tags.append(["name", name])
    if description is not None:
        tags.append(["description", description])
    tags.extend(extra_tags or [])
    return {
        "id": event_id,
        "pubkey": pubkey,
        "created_at": created_at,
        "kind": 36363,
        "tags": tags,
        "content": "",
        "sig": "c" * 128,
    }


def make_record(
    url: str = "https://cdn.example.com",
    created_at: int = 1_700_000_000,
    **kwargs: Any,
) -> ServerRecord:
    """Build a ServerRecord with sensible defaults."""
    fields: dict[str, Any] = {
        "name": None,
        "description": None,
        "pubkey": "a" * 64,
        "event_id": f"{created_at:064x}",
    }
    fields.update(kwargs)
    return ServerRecord(url=url, created_at=created_at, **fields)


@pytest.fixture
def event_factory() -> Callable[..., dict[str, Any]]:
    """Expose make_event as a fixture."""
    return make_event


@pytest.fixture
def record_factory() -> Callable[..., ServerRecord]:
    """Expose make_record as a fixture."""
    return make_record


# ============================================================================
# Fake Relay
# ============================================================================


class FakeRelay:
    """Scripted Nostr relay speaking just enough NIP-01 for subscription tests.

    Attributes:
        events: Raw events sent in reply to every ``REQ``.
        send_eose: Send ``EOSE`` after the events.
        closed_reason: If set, answer with ``CLOSED`` instead of events.
        hang_before_reply: Seconds to wait after ``REQ`` before replying.
        raw_frames: Extra text frames sent before the events (e.g. garbage).
        close_after_events: Close the socket right after sending the events.
        requests: Every decoded ``REQ`` received.
        connections: Number of accepted WebSocket connections.
    """

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.send_eose = True
        self.closed_reason: str | None = None
        self.hang_before_reply = 0.0
        self.raw_frames: list[str] = []
        self.foreign_subscription_events: list[dict[str, Any]] = []
        self.close_after_events = False
        self.requests: list[list[Any]] = []
        self.connections = 0

    async def handler(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connections += 1

        try:
            async for msg in ws:
                if msg.type != web.WSMsgType.TEXT:
                    continue
                message = json.loads(msg.data)
                if message[0] != "REQ":
                    continue
                self.requests.append(message)
                if await self._reply(ws, message[1]):
                    break
        except ConnectionResetError:
            # Client went away while we were still replying
            pass

        return ws

    async def _reply(self, ws: web.WebSocketResponse, sub_id: str) -> bool:
        """Answer one REQ. Returns True when the socket was closed."""
        if self.hang_before_reply:
            await asyncio.sleep(self.hang_before_reply)
        if ws.closed:
            return True

        if self.closed_reason is not None:
            await ws.send_str(json.dumps(["CLOSED", sub_id, self.closed_reason]))
            return False

        for frame in self.raw_frames:
            await ws.send_str(frame)
        for event in self.foreign_subscription_events:
            await ws.send_str(json.dumps(["EVENT", "someone-else", event]))
        for event in self.events:
            await ws.send_str(json.dumps(["EVENT", sub_id, event]))

        if self.close_after_events:
            await ws.close()
            return True
        if self.send_eose:
            await ws.send_str(json.dumps(["EOSE", sub_id]))
        return False


@pytest.fixture
async def fake_relay() -> AsyncIterator[tuple[FakeRelay, str]]:
    """Start a FakeRelay and yield it with its ``ws://`` URL."""
    relay = FakeRelay()
    app = web.Application()
    app.router.add_get("/", relay.handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield relay, str(server.make_url("/")).replace("http://", "ws://", 1)
    finally:
        await server.close()
