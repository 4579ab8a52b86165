"""Discovery service utility functions.

Pure helpers that do not require service instance state: relay URL
extraction and sampling for the directory bootstrap, and the
merge/dedup/sort step applied to per-relay query results.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any

import jmespath

from blossomwatch.models.relay import Relay


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from blossomwatch.models.server import ServerRecord


def extract_urls_from_response(data: Any, expression: str = "[*]") -> list[str]:
    """Extract relay URL strings from a decoded directory response.

    Args:
        data: Parsed JSON body.
        expression: JMESPath expression selecting the URL strings.

    Returns:
        The string items selected by *expression*; non-string items are
        dropped. An expression that selects nothing, or a single non-list
        value, yields an empty list.
    """
    selected = jmespath.search(expression, data)
    if not isinstance(selected, list):
        return []
    return [item for item in selected if isinstance(item, str)]


def select_directory_relays(
    candidates: Iterable[str],
    core: Sequence[str],
    max_additional: int,
    rng: random.Random | None = None,
) -> list[str]:
    """Pick up to *max_additional* directory relays to query besides *core*.

    Candidates are normalized through [Relay][blossomwatch.models.relay.Relay].
    Only clearnet ``wss://`` relays survive; invalid URLs, overlay-network
    relays, relays already in *core*, and duplicates are dropped. The
    survivors are sampled uniformly without replacement.

    Args:
        candidates: Raw URL strings from the directory.
        core: Normalized core relay URLs.
        max_additional: Sample size upper bound.
        rng: Random source (defaults to the module-level generator).

    Returns:
        Normalized relay URLs, in sampled order.
    """
    excluded = set(core)
    pool: list[str] = []
    for raw in candidates:
        if not raw.strip().startswith("wss://"):
            continue
        try:
            relay = Relay(raw)
        except (ValueError, TypeError):
            continue
        if not relay.is_clearnet or relay.url in excluded:
            continue
        excluded.add(relay.url)
        pool.append(relay.url)

    k = min(max_additional, len(pool))
    return (rng or random).sample(pool, k)


def merge_servers(results: Iterable[Iterable[ServerRecord]]) -> list[ServerRecord]:
    """Merge per-relay results into one list, unique by URL, newest first.

    For each URL the record with the strictly greatest ``created_at`` is
    kept; on equal timestamps the first record seen stays. The outcome does
    not depend on the order in which relays answered (ties excepted).

    Args:
        results: One iterable of records per relay.

    Returns:
        Records sorted by ``created_at`` descending.
    """
    best: dict[str, ServerRecord] = {}
    for relay_records in results:
        for record in relay_records:
            current = best.get(record.url)
            if current is None or record.created_at > current.created_at:
                best[record.url] = record
    return sorted(best.values(), key=lambda record: record.created_at, reverse=True)
