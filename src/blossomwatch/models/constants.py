"""Enumerations and limits shared by the models, nips and services layers."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class NetworkType(StrEnum):
    """Which network a relay host lives on.

    Set by [Relay][blossomwatch.models.relay.Relay] from the hostname.
    Clearnet relays are dialled over ``wss://``; Tor, I2P and Lokinet relays
    over ``ws://``. ``LOCAL`` (loopback, private and other non-global
    addresses) and ``UNKNOWN`` (unparseable hostnames) are only produced by
    [classify_host()][blossomwatch.models.relay.classify_host]; a ``Relay``
    refuses to be built for either.
    """

    CLEARNET = "clearnet"
    TOR = "tor"
    I2P = "i2p"
    LOKI = "loki"
    LOCAL = "local"
    UNKNOWN = "unknown"


class ServiceName(StrEnum):
    """Logger names and ``service`` metric label values."""

    DISCOVERY = "discovery"


class EventKind(IntEnum):
    """Nostr event kinds this package subscribes to."""

    # Addressable; the d tag holds the server URL
    BLOSSOM_SERVER = 36_363


# Largest kind allowed by NIP-01
EVENT_KIND_MAX = 65_535
