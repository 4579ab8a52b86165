"""Relay protocol client and HTTP helpers.

The utils layer sits in the middle of the diamond DAG, depending only on
[blossomwatch.models][blossomwatch.models] and
[blossomwatch.nips][blossomwatch.nips]. It owns all network I/O below the
service layer.

Attributes:
    protocol: NIP-01 subscription client (one relay) and chunked fan-out
        across many relays. Never raises for relay-side failures.
    http: Bounded JSON reading for HTTP responses.

Note:
    The utils layer has **zero** imports from ``blossomwatch.core`` or
    ``blossomwatch.services``.
"""
