"""Size-capped JSON reads for HTTP responses.

The relay directory is an untrusted third-party endpoint; its body is read
against a byte ceiling before any JSON decoding happens.

See Also:
    [Discovery.fetch_directory_relays][blossomwatch.services.discovery.Discovery.fetch_directory_relays]:
        The only caller.
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp


async def _read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Drain *response* into memory, failing once it exceeds *max_size* bytes.

    A single ``content.read(n)`` may return short under chunked
    transfer-encoding, so reads repeat until EOF.

    Raises:
        ValueError: If the body is larger than *max_size*.
    """
    body = bytearray()
    while chunk := await response.content.read(max_size + 1 - len(body)):
        body += chunk
        if len(body) > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
    return bytes(body)


async def read_bounded_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    """Decode the JSON body of *response*, refusing bodies over *max_size* bytes.

    Raises:
        ValueError: If the body is too large.
        json.JSONDecodeError: If it is not valid JSON.
    """
    return json.loads(await _read_bounded(response, max_size))
