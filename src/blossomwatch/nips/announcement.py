"""
Blossom server announcement parsing (kind 36363).

Extracts a [ServerRecord][blossomwatch.models.server.ServerRecord] from one
raw relay event. Announcements are addressable events whose ``d`` tag
carries the server URL; optional ``name`` and ``description`` tags carry
advisory metadata.

Note:
    Relay-supplied events are untrusted. Every field is shape-checked before
    use and no array length is assumed. Anything unexpected yields ``None``
    rather than an exception, so one malformed event never aborts the
    processing of a relay's stream.

See Also:
    [blossomwatch.utils.protocol.RelayQuery][blossomwatch.utils.protocol.RelayQuery]:
        Routes every ``EVENT`` payload through this parser.
"""

from __future__ import annotations

import logging
from typing import Any, Final

from blossomwatch.models.server import SECURE_SCHEME_PREFIX, ServerRecord


logger = logging.getLogger(__name__)

IDENTITY_TAG: Final[str] = "d"
NAME_TAG: Final[str] = "name"
DESCRIPTION_TAG: Final[str] = "description"


def find_tag_value(tags: Any, name: str) -> str | None:
    """Return the second element of the first tag named *name*.

    Tag entries that are not lists, are empty, or carry a non-string name are
    skipped. The first entry whose name matches decides the result: if it has
    no value, or the value is not a string, ``None`` is returned.

    Args:
        tags: Untrusted ``tags`` field of an event.
        name: Tag name to look up (e.g. ``"d"``).

    Returns:
        The tag value, or ``None`` when absent or malformed.
    """
    if not isinstance(tags, list):
        return None
    for tag in tags:
        if not isinstance(tag, list) or not tag or tag[0] != name:
            continue
        if len(tag) < 2 or not isinstance(tag[1], str):  # noqa: PLR2004
            return None
        return tag[1]
    return None


def _advisory_value(tags: Any, name: str) -> str | None:
    """Value of an optional metadata tag, or ``None`` if it holds null bytes.

    A bad ``name`` or ``description`` must not cost the whole record.
    """
    value = find_tag_value(tags, name)
    if value is not None and "\x00" in value:
        return None
    return value


def parse_server_announcement(event: Any) -> ServerRecord | None:
    """Build a server record from a raw announcement event.

    Args:
        event: Decoded ``EVENT`` payload (expected to be a JSON object with
            ``tags``, ``pubkey``, ``created_at`` and ``id``).

    Returns:
        The parsed [ServerRecord][blossomwatch.models.server.ServerRecord],
        or ``None`` when the event is not a valid announcement. Events whose
        URL is not ``https://`` are rejected unconditionally.

    Examples:
        ```python
        record = parse_server_announcement({
            "id": "ab" * 32,
            "pubkey": "cd" * 32,
            "created_at": 1700000000,
            "tags": [["d", "https://cdn.example.com"], ["name", "Example"]],
        })
        record.name  # 'Example'
        ```
    """
    if not isinstance(event, dict):
        return None

    tags = event.get("tags")
    url = find_tag_value(tags, IDENTITY_TAG)
    if not url:
        return None
    if not url.startswith(SECURE_SCHEME_PREFIX):
        return None

    try:
        return ServerRecord(
            url=url,
            name=_advisory_value(tags, NAME_TAG),
            description=_advisory_value(tags, DESCRIPTION_TAG),
            pubkey=event.get("pubkey"),
            created_at=event.get("created_at"),
            event_id=event.get("id"),
        )
    except (TypeError, ValueError) as e:
        logger.debug("announcement_rejected url=%s error=%s", url, e)
        return None
