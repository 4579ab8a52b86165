"""Discovery service package.

Re-exports all public symbols::

    from blossomwatch.services.discovery import Discovery, DiscoveryConfig
"""

from .configs import (
    DEFAULT_CORE_RELAYS,
    DirectoryConfig,
    DiscoveryConfig,
    OutputConfig,
    QueryConfig,
    RelaysConfig,
)
from .service import Discovery
from .utils import extract_urls_from_response, merge_servers, select_directory_relays


__all__ = [
    "DEFAULT_CORE_RELAYS",
    "DirectoryConfig",
    "Discovery",
    "DiscoveryConfig",
    "OutputConfig",
    "QueryConfig",
    "RelaysConfig",
    "extract_urls_from_response",
    "merge_servers",
    "select_directory_relays",
]
