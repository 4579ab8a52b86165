"""
Prometheus samples and the scrape endpoint.

All services share four metric families, each labelled by service:

* ``blossomwatch_service`` (info): static metadata, set when
  ``run_forever()`` starts.
* ``blossomwatch_cycle_duration_seconds`` (histogram): wall time of each
  successful cycle.
* ``blossomwatch_service_gauge`` (gauge, extra ``name`` label): current
  values such as ``servers_found`` or ``consecutive_failures``.
* ``blossomwatch_service_counter`` (counter, extra ``name`` label): running
  totals such as ``cycles_success`` or ``total_servers_found``.

Services write gauges and counters through
[BaseService.set_gauge()][blossomwatch.core.base_service.BaseService.set_gauge]
and [BaseService.inc_counter()][blossomwatch.core.base_service.BaseService.inc_counter].
[MetricsServer][blossomwatch.core.metrics.MetricsServer] serves the default
registry over ``aiohttp.web`` in continuous mode.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Where, and whether, to expose ``/metrics``."""

    enabled: bool = Field(default=False, description="Collect samples and serve them")
    port: int = Field(default=8000, ge=1024, le=65535)
    host: str = Field(default="127.0.0.1", description="Bind address for the scrape endpoint")
    path: str = Field(default="/metrics")


SERVICE_INFO = Info("blossomwatch_service", "Static service metadata")

# One cycle is a handful of relay timeouts, hence the short buckets
CYCLE_DURATION_SECONDS = Histogram(
    "blossomwatch_cycle_duration_seconds",
    "Wall time of a successful service cycle",
    ["service"],
    buckets=(1, 2.5, 5, 10, 20, 30, 60, 120, 300),
)

SERVICE_GAUGE = Gauge(
    "blossomwatch_service_gauge",
    "Named point-in-time values reported by a service",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "blossomwatch_service_counter",
    "Named running totals reported by a service",
    ["service", "name"],
)


class MetricsServer:
    """``aiohttp.web`` app answering scrapes on ``config.path``.

    ``start()`` is a no-op when ``config.enabled`` is false; ``stop()`` may be
    called whether or not the server ever started.
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Bind and start serving.

        Raises:
            OSError: If the address cannot be bound.
        """
        if not self._config.enabled:
            return
        app = web.Application()
        app.router.add_get(self._config.path, self._scrape)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        await web.TCPSite(runner, self._config.host, self._config.port).start()
        self._runner = runner

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

    @staticmethod
    async def _scrape(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Build a [MetricsServer][blossomwatch.core.metrics.MetricsServer] and start it.

    The caller owns the result and must ``stop()`` it to release the port.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
