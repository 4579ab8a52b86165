"""Configuration models for [Discovery][blossomwatch.services.discovery.Discovery].

``DiscoveryConfig`` extends
[BaseServiceConfig][blossomwatch.core.base_service.BaseServiceConfig] with
four sections mirroring the stages of a session: which relays to always
ask, where to sample extra ones from, how to query them, and where the
report goes. ``config/discovery.yaml`` lists every field with its default.
"""

from __future__ import annotations

import jmespath
from pydantic import BaseModel, Field, field_validator, model_validator

from blossomwatch.core.base_service import BaseServiceConfig
from blossomwatch.models.constants import EVENT_KIND_MAX, EventKind
from blossomwatch.models.relay import Relay


DEFAULT_CORE_RELAYS: tuple[str, ...] = (
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.nostr.band",
    "wss://relay.primal.net",
)


class RelaysConfig(BaseModel):
    """Fixed relay set that is always queried.

    Entries are normalized through [Relay][blossomwatch.models.relay.Relay];
    duplicates after normalization are dropped, first occurrence wins.
    """

    core: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORE_RELAYS),
        description="Relays queried on every run, before any sampled relay",
    )

    @field_validator("core")
    @classmethod
    def _normalize_core(cls, v: list[str]) -> list[str]:
        normalized: list[str] = []
        for url in v:
            try:
                relay = Relay(url)
            except (ValueError, TypeError) as e:
                raise ValueError(f"invalid core relay {url!r}: {e}") from e
            if relay.url not in normalized:
                normalized.append(relay.url)
        return normalized


class DirectoryConfig(BaseModel):
    """Public relay list used to widen the search beyond the core relays.

    The response is run through the ``jmespath`` expression, which must
    yield relay URL strings. ``[*]`` fits the flat string array served by
    api.nostr.watch; a directory wrapping its list, e.g.
    ``{"data": {"relays": [{"url": ...}]}}``, would use
    ``data.relays[*].url``.
    """

    enabled: bool = Field(default=True, description="Sample extra relays from the directory")
    url: str = Field(
        default="https://api.nostr.watch/v1/online",
        description="Directory endpoint returning candidate relay URLs",
    )
    timeout: float = Field(
        default=3.0, ge=0.1, le=60.0, description="Total seconds allowed for the directory request"
    )
    connect_timeout: float = Field(
        default=3.0,
        ge=0.1,
        le=60.0,
        description="Seconds allowed for the TCP and TLS handshake",
    )
    jmespath: str = Field(
        default="[*]",
        description="Expression selecting relay URL strings from the response",
    )
    max_additional: int = Field(
        default=16, ge=0, le=500, description="Maximum number of sampled directory relays"
    )
    verify_ssl: bool = Field(
        default=True,
        description="Check the directory certificate",
    )
    max_response_size: int = Field(
        default=5_242_880,
        ge=1024,
        le=52_428_800,
        description="Largest accepted response body, in bytes",
    )

    @model_validator(mode="after")
    def _check_timeouts(self) -> DirectoryConfig:
        if self.connect_timeout > self.timeout:
            msg = f"connect_timeout {self.connect_timeout} is longer than timeout {self.timeout}"
            raise ValueError(msg)
        return self

    @field_validator("jmespath")
    @classmethod
    def _compile_jmespath(cls, v: str) -> str:
        try:
            jmespath.compile(v)
        except jmespath.exceptions.ParseError as e:
            raise ValueError(f"not a valid JMESPath expression: {e}") from e
        return v


class QueryConfig(BaseModel):
    """Per-relay subscription settings and fan-out concurrency."""

    timeout: float = Field(
        default=5.0, ge=0.1, le=120.0, description="Per-relay deadline in seconds"
    )
    concurrency: int = Field(
        default=6, ge=1, le=100, description="Relays queried at the same time (chunk size)"
    )
    limit: int = Field(
        default=500, ge=1, le=10_000, description="Result-count cap sent to each relay"
    )
    kind: int = Field(
        default=EventKind.BLOSSOM_SERVER,
        ge=0,
        le=EVENT_KIND_MAX,
        description="Announcement event kind",
    )


class OutputConfig(BaseModel):
    """Where and how the session report is written."""

    enabled: bool = Field(default=True, description="Write the report to disk")
    path: str = Field(default="BlossomListOutput.json", description="Report file path")
    include_details: bool = Field(
        default=False, description="Also write per-server metadata under 'details'"
    )
    indent: int = Field(default=2, ge=0, le=8, description="JSON indentation")


class DiscoveryConfig(BaseServiceConfig):
    """Top-level discovery configuration, one field per YAML section."""

    relays: RelaysConfig = Field(default_factory=RelaysConfig)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
