"""
Immutable Blossom server record extracted from an announcement event.

A [ServerRecord][blossomwatch.models.server.ServerRecord] is the unit of
discovery: one published server endpoint, keyed by its URL. Records are
produced by
[parse_server_announcement][blossomwatch.nips.announcement.parse_server_announcement]
and merged across relays by
[merge_servers][blossomwatch.services.discovery.utils.merge_servers].

See Also:
    [blossomwatch.models.report][]: Session output built from merged records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

from ._validation import validate_text, validate_non_negative_int


SECURE_SCHEME_PREFIX: Final[str] = "https://"


@dataclass(frozen=True, slots=True)
class ServerRecord:
    """One discovered Blossom server endpoint.

    Attributes:
        url: Canonical identity key. Always starts with ``https://``.
        name: Advisory display name from the ``name`` tag, if any.
        description: Advisory description from the ``description`` tag, if any.
        pubkey: Hex public key of the publishing party.
        created_at: Publisher-claimed Unix timestamp of the announcement.
            Used for conflict resolution; never the time of receipt.
        event_id: Identifier of the source event, for traceability.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If ``url`` is not an ``https://`` URL, a required string
            is empty, ``created_at`` is negative, or any string contains
            null bytes.

    Examples:
        ```python
        record = ServerRecord(
            url="https://blossom.example.com",
            name=None,
            description=None,
            pubkey="ab" * 32,
            created_at=1700000000,
            event_id="cd" * 32,
        )
        record.to_dict()["url"]  # 'https://blossom.example.com'
        ```
    """

    url: str
    name: str | None
    description: str | None
    pubkey: str
    created_at: int
    event_id: str

    def __post_init__(self) -> None:
        """Validate field types on construction."""
        validate_text(self.url, "url")
        if not self.url.startswith(SECURE_SCHEME_PREFIX):
            raise ValueError(f"url must start with {SECURE_SCHEME_PREFIX}: {self.url!r}")
        validate_text(self.name, "name", optional=True)
        validate_text(self.description, "description", optional=True)
        validate_text(self.pubkey, "pubkey")
        validate_non_negative_int(self.created_at, "created_at")
        validate_text(self.event_id, "event_id")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable mapping of all fields."""
        return {
            "url": self.url,
            "name": self.name,
            "description": self.description,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "event_id": self.event_id,
        }
