"""blossomwatch: find Blossom media servers announced on Nostr.

One discovery session subscribes to kind 36363 on a set of relays, keeps
the newest announcement for every server URL and produces a report sorted
newest first. Run it with ``blossomwatch --once`` or import the pieces::

    from blossomwatch import Discovery

    async with Discovery() as service:
        report = await service.discover()

Subpackages, lowest first: ``models`` (frozen value types), then ``core``
(service lifecycle, logging, metrics), ``nips`` (announcement parsing) and
``utils`` (relay client, HTTP helpers), then ``services``. Imports only flow
upward from ``models``.

Names listed in ``__all__`` are imported on first attribute access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("blossomwatch")

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    # models
    "DiscoveryReport": ("blossomwatch.models", "DiscoveryReport"),
    "NetworkType": ("blossomwatch.models", "NetworkType"),
    "Relay": ("blossomwatch.models", "Relay"),
    "ServerRecord": ("blossomwatch.models", "ServerRecord"),
    # core
    "BaseService": ("blossomwatch.core", "BaseService"),
    "ConfigT": ("blossomwatch.core", "ConfigT"),
    "Logger": ("blossomwatch.core", "Logger"),
    # nips, utils
    "parse_server_announcement": ("blossomwatch.nips", "parse_server_announcement"),
    "query_relay": ("blossomwatch.utils.protocol", "query_relay"),
    "query_relays": ("blossomwatch.utils.protocol", "query_relays"),
    # services
    "Discovery": ("blossomwatch.services", "Discovery"),
    "DiscoveryConfig": ("blossomwatch.services", "DiscoveryConfig"),
    "merge_servers": ("blossomwatch.services.discovery", "merge_servers"),
}

__all__ = sorted(_LAZY_IMPORTS)


def __getattr__(name: str) -> object:
    try:
        module_path, attr_name = _LAZY_IMPORTS[name]
    except KeyError:
        raise AttributeError(f"module 'blossomwatch' has no attribute {name!r}") from None
    value = getattr(importlib.import_module(module_path), attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return [*__all__, "__version__"]
