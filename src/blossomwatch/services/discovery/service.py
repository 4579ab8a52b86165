"""Discovery service for blossomwatch.

Finds Blossom media servers announced on Nostr (kind 36363) and writes a
sorted, deduplicated server list.

One discovery session runs these steps:

1. **Relay selection** -- the configured core relays, plus up to
   ``directory.max_additional`` relays sampled from a public relay
   directory (``api.nostr.watch`` by default). A failing directory is not an
   error: the session continues with the core relays only.
2. **Fan-out** -- every selected relay is queried through
   [query_relays][blossomwatch.utils.protocol.query_relays], at most
   ``query.concurrency`` at a time, each bounded by ``query.timeout``.
3. **Merge** -- [merge_servers][blossomwatch.services.discovery.utils.merge_servers]
   keeps the newest announcement per server URL and sorts newest first.
4. **Output** -- the
   [DiscoveryReport][blossomwatch.models.report.DiscoveryReport] is written
   as JSON to ``output.path``.

Note:
    The session is best-effort. Slow, absent, or malformed relays only
    reduce the number of servers found; zero servers is a valid result. The
    session fails only when no relay is left to query
    ([ConfigurationError][blossomwatch.core.exceptions.ConfigurationError])
    or when the report cannot be written
    ([OutputError][blossomwatch.core.exceptions.OutputError]).

Examples:
    ```python
    from blossomwatch.services.discovery import Discovery

    discovery = Discovery.from_yaml("config/discovery.yaml")
    async with discovery:
        report = await discovery.discover()
    print(report.servers)
    ```
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

import aiohttp

from blossomwatch.core.base_service import BaseService
from blossomwatch.core.exceptions import (
    BlossomWatchError,
    ConfigurationError,
    ConnectivityError,
    OutputError,
    ProtocolError,
    RequestTimeoutError,
)
from blossomwatch.models.constants import ServiceName
from blossomwatch.models.report import DiscoveryReport
from blossomwatch.utils.http import read_bounded_json
from blossomwatch.utils.protocol import query_relays

from .configs import DiscoveryConfig
from .utils import extract_urls_from_response, merge_servers, select_directory_relays


if TYPE_CHECKING:
    import random
    import ssl


class Discovery(BaseService[DiscoveryConfig]):
    """Blossom server discovery service.

    See Also:
        [DiscoveryConfig][blossomwatch.services.discovery.DiscoveryConfig]:
            Configuration model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.DISCOVERY
    CONFIG_CLASS: ClassVar[type[DiscoveryConfig]] = DiscoveryConfig

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(config=config)
        self._config: DiscoveryConfig
        self._rng = rng

    async def run(self) -> None:
        """Execute one discovery session and write its report."""
        self._logger.info(
            "cycle_started",
            core_relays=len(self._config.relays.core),
            directory_enabled=self._config.directory.enabled,
        )
        start_time = time.monotonic()

        report = await self.discover()
        if self._config.output.enabled:
            await asyncio.to_thread(self.write_report, report)

        self._logger.info(
            "cycle_completed",
            servers=report.count,
            relays_searched=report.relays_searched,
            duration_s=round(time.monotonic() - start_time, 2),
        )

    async def discover(self) -> DiscoveryReport:
        """Run one discovery session.

        Returns:
            The merged [DiscoveryReport][blossomwatch.models.report.DiscoveryReport].

        Raises:
            ConfigurationError: If no relay is available to query.
        """
        relays = await self.select_relays()
        if not relays:
            raise ConfigurationError("no relays to query: core relay list is empty")

        query = self._config.query
        results = await query_relays(
            relays,
            concurrency=query.concurrency,
            timeout=query.timeout,
            kind=query.kind,
            limit=query.limit,
        )
        servers = merge_servers(results)

        relays_with_servers = sum(1 for records in results if records)
        self._logger.info(
            "servers_merged",
            unique=len(servers),
            announcements=sum(len(records) for records in results),
            relays_with_servers=relays_with_servers,
        )

        self.set_gauge("relays_searched", len(relays))
        self.set_gauge("relays_with_servers", relays_with_servers)
        self.set_gauge("servers_found", len(servers))
        self.inc_counter("total_servers_found", len(servers))

        return DiscoveryReport(records=tuple(servers), relays_searched=len(relays))

    async def select_relays(self) -> list[str]:
        """Return the relays for this session: core relays, then sampled ones."""
        core = list(self._config.relays.core)
        sampled: list[str] = []

        if self._config.directory.enabled and self._config.directory.max_additional > 0:
            candidates = await self.fetch_directory_relays()
            sampled = select_directory_relays(
                candidates,
                core,
                self._config.directory.max_additional,
                rng=self._rng,
            )

        self._logger.info("relays_selected", core=len(core), sampled=len(sampled))
        return core + sampled

    async def fetch_directory_relays(self) -> list[str]:
        """Fetch candidate relay URLs from the relay directory.

        Any failure is logged and yields an empty list, so the session
        proceeds with the core relays only.

        Returns:
            Raw URL strings extracted from the directory response.
        """
        directory = self._config.directory
        ssl_context: ssl.SSLContext | bool = True
        if not directory.verify_ssl:
            ssl_context = False

        try:
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            async with aiohttp.ClientSession(connector=connector) as session:
                urls = await self._fetch_directory(session)
        except BlossomWatchError as e:
            self._logger.warning(
                "directory_fetch_failed",
                error=str(e),
                error_type=type(e).__name__,
                url=directory.url,
            )
            return []

        self._logger.debug("directory_fetched", url=directory.url, count=len(urls))
        return urls

    async def _fetch_directory(self, session: aiohttp.ClientSession) -> list[str]:
        """Fetch and decode the directory, translating failures to typed errors.

        Raises:
            RequestTimeoutError: If the request exceeds ``directory.timeout``.
            ConnectivityError: On HTTP or network failures.
            ProtocolError: If the body is oversized, not JSON, or not a list.
        """
        directory = self._config.directory
        timeout = aiohttp.ClientTimeout(
            total=directory.timeout,
            connect=min(directory.connect_timeout, directory.timeout),
            sock_read=directory.timeout,
        )
        try:
            async with session.get(directory.url, timeout=timeout) as resp:
                resp.raise_for_status()
                data = await read_bounded_json(resp, directory.max_response_size)
        except TimeoutError as e:
            raise RequestTimeoutError(f"directory request timed out: {directory.url}") from e
        except (aiohttp.ClientError, OSError) as e:
            raise ConnectivityError(f"directory request failed: {e}") from e
        except ValueError as e:
            raise ProtocolError(f"unusable directory response: {e}") from e

        if not isinstance(data, (list, dict)):
            raise ProtocolError(f"unexpected directory payload type: {type(data).__name__}")
        return extract_urls_from_response(data, directory.jmespath)

    def write_report(self, report: DiscoveryReport, path: str | Path | None = None) -> Path:
        """Write *report* as JSON, replacing the target atomically.

        Args:
            report: Session report to persist.
            path: Destination (defaults to ``output.path``).

        Returns:
            The path written.

        Raises:
            OutputError: If the file cannot be written.
        """
        output = self._config.output
        dest = Path(path if path is not None else output.path)
        payload = json.dumps(
            report.to_dict(include_details=output.include_details),
            indent=output.indent or None,
            ensure_ascii=False,
        )

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload + "\n")
                Path(tmp_name).replace(dest)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise OutputError(f"cannot write report to {dest}: {e}") from e

        self._logger.info("output_written", path=str(dest), servers=report.count)
        return dest
