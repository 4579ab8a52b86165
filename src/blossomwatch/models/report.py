"""
Discovery session output.

[DiscoveryReport][blossomwatch.models.report.DiscoveryReport] is the shape
handed to downstream consumers after one discovery session: how many unique
servers were found, how many relays were searched, and the sorted server
URL list.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_non_negative_int
from .server import ServerRecord


@dataclass(frozen=True, slots=True)
class DiscoveryReport:
    """Result of one discovery session.

    Attributes:
        records: Merged server records, sorted newest first.
        relays_searched: Number of relays the session attempted to query.
        generated_at: Generation time (timezone-aware UTC).
        success: Whether the session completed. A session with zero servers
            is still successful.

    Examples:
        ```python
        report = DiscoveryReport(records=merged, relays_searched=20)
        report.to_dict()
        # {'success': True, 'count': 3, 'relays_searched': 20,
        #  'servers': ['https://...', ...], 'timestamp': '2024-...'}
        ```
    """

    records: tuple[ServerRecord, ...]
    relays_searched: int
    generated_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )
    success: bool = True

    def __post_init__(self) -> None:
        """Normalize ``records`` to a tuple and validate counters."""
        object.__setattr__(self, "records", tuple(self.records))
        validate_non_negative_int(self.relays_searched, "relays_searched")

    @property
    def servers(self) -> list[str]:
        """Server URLs in output order."""
        return [record.url for record in self.records]

    @property
    def count(self) -> int:
        """Number of unique servers."""
        return len(self.records)

    def to_dict(self, *, include_details: bool = False) -> dict[str, Any]:
        """Return the externalized session output.

        Args:
            include_details: Also emit a ``details`` list with the full
                per-server metadata, in the same order as ``servers``.
        """
        data: dict[str, Any] = {
            "success": self.success,
            "count": self.count,
            "relays_searched": self.relays_searched,
            "servers": self.servers,
            "timestamp": self.generated_at.isoformat().replace("+00:00", "Z"),
        }
        if include_details:
            data["details"] = [record.to_dict() for record in self.records]
        return data
