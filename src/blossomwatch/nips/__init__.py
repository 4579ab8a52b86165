"""Nostr Implementation Possibilities -- protocol-specific parse logic.

The NIPs layer sits in the middle of the diamond DAG, depending only on
[blossomwatch.models][blossomwatch.models].

Warning:
    Parse functions **never raise exceptions** on relay-supplied input.
    Malformed events are reported as ``None``.

Attributes:
    parse_server_announcement: Extract a
        [ServerRecord][blossomwatch.models.server.ServerRecord] from a
        kind 36363 Blossom server announcement.
    find_tag_value: First-match tag lookup with strict shape checks.
"""

from blossomwatch.nips.announcement import find_tag_value, parse_server_announcement


__all__ = [
    "find_tag_value",
    "parse_server_announcement",
]
