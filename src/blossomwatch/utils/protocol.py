"""Nostr relay subscription client and bounded-concurrency relay fan-out.

Speaks the minimal NIP-01 subscription protocol over an ``aiohttp``
WebSocket: one ``REQ`` per connection, ``EVENT`` payloads routed through
[parse_server_announcement][blossomwatch.nips.announcement.parse_server_announcement],
and ``EOSE`` ending the conversation.

Attributes:
    RelayQuery: Per-connection state machine. Every way a conversation can
        end (EOSE, deadline, transport error, unsolicited close) funnels into
        a single guarded ``finalize()``.
    query_relay: Query one relay; always returns the records collected so far.
    query_relays: Query a relay list in fixed-size chunks with a chunk-level
        barrier, bounding the number of open connections.

Note:
    Nothing here raises to the caller except ``asyncio.CancelledError``.
    Connection failures, protocol violations, and timeouts all resolve to a
    (possibly empty) list so that a single relay stays invisible to the rest
    of the session.

Examples:
    ```python
    from blossomwatch.utils.protocol import query_relay, query_relays

    servers = await query_relay("wss://relay.damus.io", timeout=5.0)
    results = await query_relays(relay_urls, concurrency=6, timeout=5.0)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

import aiohttp

from blossomwatch.models.constants import EventKind
from blossomwatch.nips.announcement import parse_server_announcement


if TYPE_CHECKING:
    from collections.abc import Sequence

    from blossomwatch.models.server import ServerRecord


DEFAULT_TIMEOUT: Final[float] = 5.0
DEFAULT_LIMIT: Final[int] = 500
DEFAULT_CONCURRENCY: Final[int] = 6

_WS_CLOSE_TIMEOUT: Final[float] = 1.0
_SUBSCRIPTION_PREFIX: Final[str] = "blossom-"

logger = logging.getLogger(__name__)


class QueryState(StrEnum):
    """Lifecycle of a [RelayQuery][blossomwatch.utils.protocol.RelayQuery].

    ``IDLE -> CONNECTING -> SUBSCRIBED -> DRAINING -> FINALIZED``. Any state
    may jump straight to ``FINALIZED``; ``FINALIZED`` is terminal.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    DRAINING = "draining"
    FINALIZED = "finalized"


class FinalizeReason(StrEnum):
    """Why a relay conversation ended."""

    EOSE = "eose"
    TIMEOUT = "timeout"
    ERROR = "error"
    CLOSED = "closed"


def new_subscription_id() -> str:
    """Return a locally unique subscription identifier."""
    return _SUBSCRIPTION_PREFIX + secrets.token_hex(6)


class RelayQuery:
    """One subscription conversation with one relay.

    The transition handlers (``on_open``, ``on_message``, ``on_error``,
    ``on_close``) are synchronous and can be driven directly; ``run()`` wires
    them to a real WebSocket and a deadline timer.

    Attributes:
        relay_url: WebSocket URL of the relay.
        subscription_id: Identifier sent in ``REQ`` and matched on replies.
        servers: Records collected so far, in receipt order.
        state: Current [QueryState][blossomwatch.utils.protocol.QueryState].
        reason: [FinalizeReason][blossomwatch.utils.protocol.FinalizeReason]
            once finalized, else ``None``.
    """

    def __init__(
        self,
        relay_url: str,
        *,
        kind: int = EventKind.BLOSSOM_SERVER,
        limit: int = DEFAULT_LIMIT,
        subscription_id: str | None = None,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self.relay_url = relay_url
        self.subscription_id = subscription_id or new_subscription_id()
        self.servers: list[ServerRecord] = []
        self.state = QueryState.IDLE
        self.reason: FinalizeReason | None = None
        self._kind = int(kind)
        self._limit = limit
        self._close_timeout = close_timeout
        self._done: asyncio.Future[FinalizeReason] | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def finalized(self) -> bool:
        """Whether the conversation has ended."""
        return self.state is QueryState.FINALIZED

    def build_request(self) -> str:
        """Serialize the ``REQ`` message for this subscription."""
        return json.dumps(
            ["REQ", self.subscription_id, {"kinds": [self._kind], "limit": self._limit}]
        )

    # -------------------------------------------------------------------------
    # Transition handlers
    # -------------------------------------------------------------------------

    def on_open(self) -> str | None:
        """Mark the subscription as sent and return the ``REQ`` to send.

        Returns ``None`` if the query was already finalized (e.g. the
        deadline fired while the connection was opening).
        """
        if self.finalized:
            return None
        self.state = QueryState.SUBSCRIBED
        return self.build_request()

    def on_message(self, data: Any) -> None:
        """Handle one inbound text frame.

        Undecodable frames, frames for other subscriptions, and message types
        other than ``EVENT``/``EOSE``/``CLOSED`` are ignored.
        """
        if self.finalized:
            return

        try:
            message = json.loads(data)
        except (TypeError, ValueError, RecursionError):
            logger.debug("message_decode_failed relay=%s", self.relay_url)
            return

        if not isinstance(message, list) or len(message) < 2:  # noqa: PLR2004
            return
        if message[1] != self.subscription_id:
            return

        msg_type = message[0]
        if msg_type == "EVENT":
            self.state = QueryState.DRAINING
            if len(message) < 3:  # noqa: PLR2004
                return
            record = parse_server_announcement(message[2])
            if record is not None:
                self.servers.append(record)
        elif msg_type == "EOSE":
            self.finalize(FinalizeReason.EOSE)
        elif msg_type == "CLOSED":
            self.finalize(FinalizeReason.CLOSED)

    def on_error(self, error: BaseException | None) -> None:
        """Finalize after a transport or protocol error."""
        if not self.finalized:
            logger.debug("relay_query_error relay=%s error=%s", self.relay_url, error)
        self.finalize(FinalizeReason.ERROR)

    def on_close(self) -> None:
        """Finalize after the relay closed the connection."""
        self.finalize(FinalizeReason.CLOSED)

    def finalize(self, reason: FinalizeReason) -> bool:
        """Enter ``FINALIZED`` exactly once.

        Returns:
            ``True`` if this call performed the transition, ``False`` if the
            query had already been finalized.
        """
        if self.finalized:
            return False
        self.state = QueryState.FINALIZED
        self.reason = reason
        if self._done is not None and not self._done.done():
            self._done.set_result(reason)
        logger.debug(
            "relay_query_finished relay=%s reason=%s servers=%s",
            self.relay_url,
            reason,
            len(self.servers),
        )
        return True

    # -------------------------------------------------------------------------
    # I/O
    # -------------------------------------------------------------------------

    async def run(
        self,
        session: aiohttp.ClientSession,
        timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    ) -> list[ServerRecord]:
        """Converse with the relay until finalized or *timeout* elapses.

        The deadline covers the whole conversation, connection opening
        included. When it fires the connection is closed and whatever was
        collected is returned.

        Args:
            session: Shared ``aiohttp.ClientSession`` used to open the socket.
            timeout: Per-relay deadline in seconds.

        Returns:
            Records collected before finalization (possibly empty).
        """
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        if self.finalized:
            return list(self.servers)

        timer = loop.call_later(timeout, self.finalize, FinalizeReason.TIMEOUT)
        reader = asyncio.create_task(self._converse(session))
        try:
            await self._done
        finally:
            timer.cancel()
            await self._shutdown(reader)
        return list(self.servers)

    async def _converse(self, session: aiohttp.ClientSession) -> None:
        self.state = QueryState.CONNECTING
        try:
            self._ws = await session.ws_connect(self.relay_url, autoping=True)
            request = self.on_open()
            if request is None:
                return
            await self._ws.send_str(request)

            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.on_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.on_error(self._ws.exception())
                if self.finalized:
                    return
            self.on_close()
        except Exception as e:  # Intentionally broad: per-relay error boundary
            self.on_error(e)

    async def _shutdown(self, reader: asyncio.Task[None]) -> None:
        """Stop the reader task and close the socket within a bounded wait."""
        reader.cancel()
        await asyncio.wait({reader})
        ws = self._ws
        if ws is not None and not ws.closed:
            # aiohttp can raise ClientError, ConnectionResetError, etc.
            # while tearing down a half-open socket.
            with contextlib.suppress(Exception):
                await asyncio.wait_for(ws.close(), timeout=self._close_timeout)


async def query_relay(
    relay_url: str,
    *,
    kind: int = EventKind.BLOSSOM_SERVER,
    limit: int = DEFAULT_LIMIT,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    session: aiohttp.ClientSession | None = None,
) -> list[ServerRecord]:
    """Query one relay for server announcements.

    Args:
        relay_url: WebSocket URL of the relay.
        kind: Announcement event kind to subscribe to.
        limit: Result-count cap sent in the subscription filter.
        timeout: Per-relay deadline in seconds.
        session: Optional shared session; a private one is created otherwise.

    Returns:
        Records collected before the conversation ended. Never raises for
        relay-side failures.
    """
    query = RelayQuery(relay_url, kind=kind, limit=limit)
    if session is not None:
        return await query.run(session, timeout)
    async with aiohttp.ClientSession() as own_session:
        return await query.run(own_session, timeout)


async def query_relays(
    relay_urls: Sequence[str],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    kind: int = EventKind.BLOSSOM_SERVER,
    limit: int = DEFAULT_LIMIT,
    session: aiohttp.ClientSession | None = None,
) -> list[list[ServerRecord]]:
    """Query every relay, at most *concurrency* at a time.

    The relay list is split into consecutive chunks of *concurrency* URLs.
    All queries of a chunk run together and the whole chunk must finish
    before the next one starts. Failed relays are not retried.

    Args:
        relay_urls: Relay WebSocket URLs, queried in order.
        concurrency: Chunk size, i.e. the maximum number of open connections.
        timeout: Per-relay deadline in seconds.
        kind: Announcement event kind to subscribe to.
        limit: Per-relay result-count cap.
        session: Optional shared session; a private one is created otherwise.

    Returns:
        One record list per relay, in the order of *relay_urls*.

    Raises:
        ValueError: If *concurrency* is less than 1.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await query_relays(
                relay_urls,
                concurrency=concurrency,
                timeout=timeout,
                kind=kind,
                limit=limit,
                session=own_session,
            )

    async def _safe_query(relay_url: str) -> list[ServerRecord]:
        try:
            return await query_relay(
                relay_url, kind=kind, limit=limit, timeout=timeout, session=session
            )
        except Exception as e:  # Intentionally broad: one relay must never abort its chunk
            logger.warning(
                "relay_query_failed relay=%s error=%s error_type=%s",
                relay_url,
                e,
                type(e).__name__,
            )
            return []

    results: list[list[ServerRecord]] = []
    for start in range(0, len(relay_urls), concurrency):
        chunk = relay_urls[start : start + concurrency]
        logger.debug("chunk_started offset=%s size=%s", start, len(chunk))
        results.extend(await asyncio.gather(*(_safe_query(url) for url in chunk)))
    return results
