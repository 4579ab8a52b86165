"""Immutable value types for relays, discovered servers and reports.

Nothing here performs I/O or imports from another blossomwatch layer. Each
model is a ``@dataclass(frozen=True, slots=True)`` that validates itself in
``__post_init__``, so holding an instance means holding valid data.

Attributes:
    Relay: Canonical relay WebSocket URL; knows which network it is on and
        refuses local or malformed hosts.
    ServerRecord: One Blossom server announcement, keyed by ``https://`` URL.
    DiscoveryReport: Result of one discovery session, serialisable to the
        report JSON.
    NetworkType: Relay host classification.
    EventKind: Nostr kinds consumed by the services.
"""

from .constants import EVENT_KIND_MAX, EventKind, NetworkType, ServiceName
from .relay import Relay
from .report import DiscoveryReport
from .server import SECURE_SCHEME_PREFIX, ServerRecord


__all__ = [
    "EVENT_KIND_MAX",
    "SECURE_SCHEME_PREFIX",
    "DiscoveryReport",
    "EventKind",
    "NetworkType",
    "Relay",
    "ServerRecord",
    "ServiceName",
]
