"""
Normalized Nostr relay address.

[Relay][blossomwatch.models.relay.Relay] turns a raw ``ws://``/``wss://``
string from configuration or from the relay directory into one canonical
URL, so that the same relay written two ways (``wss://NOS.lol/`` and
``wss://nos.lol``) is queried once. It also classifies the host so that the
discovery service only dials public relays.

See Also:
    [select_directory_relays][blossomwatch.services.discovery.utils.select_directory_relays]:
        Filters directory candidates through this model.
    [RelaysConfig][blossomwatch.services.discovery.configs.RelaysConfig]:
        Normalizes the core relay list through this model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from ipaddress import ip_address
from typing import ClassVar, Final

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from .constants import NetworkType


_OVERLAY_SUFFIXES: Final[dict[str, NetworkType]] = {
    ".onion": NetworkType.TOR,
    ".i2p": NetworkType.I2P,
    ".loki": NetworkType.LOKI,
}
_LOCAL_HOSTNAMES: Final[frozenset[str]] = frozenset({"localhost", "localhost.localdomain"})
_REPEATED_SLASHES = re.compile(r"/{2,}")


def classify_host(host: str) -> NetworkType:
    """Return the network a bare host (no brackets, lowercase) belongs to.

    IP literals are ``CLEARNET`` only when globally routable; loopback,
    private, link-local, shared and documentation ranges are ``LOCAL``.
    Names need at least one dot and well-formed labels, else ``UNKNOWN``.
    """
    if not host:
        return NetworkType.UNKNOWN
    for suffix, network in _OVERLAY_SUFFIXES.items():
        if host.endswith(suffix):
            return network
    if host in _LOCAL_HOSTNAMES:
        return NetworkType.LOCAL

    try:
        ip = ip_address(host)
    except ValueError:
        pass
    else:
        return NetworkType.CLEARNET if ip.is_global else NetworkType.LOCAL

    labels = host.split(".")
    if len(labels) < 2 or any(  # noqa: PLR2004
        not label or label[0] == "-" or label[-1] == "-" for label in labels
    ):
        return NetworkType.UNKNOWN
    return NetworkType.CLEARNET


@dataclass(frozen=True, slots=True)
class Relay:
    """A validated relay WebSocket address.

    Clearnet relays are always expressed as ``wss://``; overlay relays
    (Tor, I2P, Lokinet) as ``ws://`` since the overlay provides transport
    encryption. Default ports are dropped, repeated and trailing slashes in
    the path are collapsed, and the host is lowercased.

    Attributes:
        url: Canonical URL, the identity used for deduplication.
        network: [NetworkType][blossomwatch.models.constants.NetworkType]
            of the host. Never ``LOCAL`` or ``UNKNOWN``.
        scheme: ``wss`` or ``ws``.
        host: Host without IPv6 brackets.
        port: Explicit non-default port, else ``None``.
        path: Normalized path, else ``None``.

    Raises:
        TypeError: If the input is not a string.
        ValueError: On a malformed URL, a scheme other than ``ws``/``wss``, a
            query string or fragment, a local or unclassifiable host, or null
            bytes.

    Examples:
        ```python
        Relay("wss://Relay.Damus.io/").url   # 'wss://relay.damus.io'
        Relay("wss://relay.damus.io").is_clearnet  # True
        ```
    """

    raw_url: str = field(repr=False)

    url: str = field(init=False)
    network: NetworkType = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}
    _VALIDATOR: ClassVar[Validator] = (
        Validator()
        .require_presence_of("scheme", "host")
        .allow_schemes("ws", "wss")
        .check_validity_of("scheme", "host", "port", "path")
    )

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"raw_url must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        uri = uri_reference(self.raw_url.strip()).normalize()
        try:
            self._VALIDATOR.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None
        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        host = uri.host.strip("[]").lower()
        network = classify_host(host)
        if network == NetworkType.LOCAL:
            raise ValueError("Local addresses not allowed")
        if network == NetworkType.UNKNOWN:
            raise ValueError(f"Invalid host: '{host}'")

        scheme = "wss" if network == NetworkType.CLEARNET else "ws"
        port = int(uri.port) if uri.port else None
        if port == self._DEFAULT_PORTS[scheme]:
            port = None
        path = _REPEATED_SLASHES.sub("/", uri.path or "").rstrip("/") or None

        netloc = f"[{host}]" if ":" in host else host
        if port is not None:
            netloc = f"{netloc}:{port}"

        object.__setattr__(self, "url", f"{scheme}://{netloc}{path or ''}")
        object.__setattr__(self, "network", network)
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path)

    @property
    def is_clearnet(self) -> bool:
        """Whether the relay is reachable on the public internet."""
        return self.network == NetworkType.CLEARNET
