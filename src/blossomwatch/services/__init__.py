"""Service layer: business logic and orchestration.

Services are the top layer of the diamond DAG, depending on
[blossomwatch.core][blossomwatch.core], [blossomwatch.nips][blossomwatch.nips],
[blossomwatch.utils][blossomwatch.utils], and
[blossomwatch.models][blossomwatch.models]. Each service extends
[BaseService][blossomwatch.core.base_service.BaseService] and implements
``async def run()`` for one cycle of work.

Attributes:
    Discovery: Queries Nostr relays for Blossom server announcements
        (kind 36363) and writes the merged, newest-first server list.
"""

from .discovery import (
    Discovery,
    DiscoveryConfig,
)


__all__ = [
    "Discovery",
    "DiscoveryConfig",
]
