"""
Service lifecycle shared by blossomwatch services.

A service is a typed pydantic config plus a ``run()`` coroutine that does one
bounded unit of work. [BaseService][blossomwatch.core.base_service.BaseService]
adds everything around it: repeating ``run()`` every ``interval`` seconds,
stopping early on a shutdown request, giving up after too many failed cycles
in a row, and exporting per-service Prometheus samples.

Typical use from the CLI::

    async with Discovery.from_yaml("config/discovery.yaml") as service:
        await service.run()            # --once
        # or
        await service.run_forever()

See Also:
    [Discovery][blossomwatch.services.discovery.Discovery]: The concrete
        discovery service.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from pathlib import Path
from types import TracebackType
from typing import Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from blossomwatch.models.constants import ServiceName

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class BaseServiceConfig(BaseModel):
    """Scheduling and metrics settings common to every service config."""

    interval: float = Field(
        default=3600.0,
        ge=60.0,
        description="Pause between the end of one cycle and the start of the next, in seconds",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Failed cycles in a row before run_forever gives up (0 = never)",
    )
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Base class for services driven by the CLI.

    Subclasses declare ``SERVICE_NAME`` (used as logger name and metrics
    label) and ``CONFIG_CLASS`` (the pydantic model built by
    [from_dict()][blossomwatch.core.base_service.BaseService.from_dict]),
    and implement [run()][blossomwatch.core.base_service.BaseService.run].
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, config: ConfigT | None = None) -> None:
        if config is None:
            config = cast("ConfigT", self.CONFIG_CLASS())
        self._config: ConfigT = config
        self._logger = Logger(self.SERVICE_NAME)
        self._shutdown_event = asyncio.Event()

    @property
    def config(self) -> ConfigT:
        return self._config

    @abstractmethod
    async def run(self) -> None:
        """Perform one cycle of work and return."""

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Ask the service to stop after the current cycle.

        Only sets an ``asyncio.Event``, so it can be installed directly as a
        loop signal handler.
        """
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Sleep up to *timeout* seconds; ``True`` if woken by a shutdown request."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    # -------------------------------------------------------------------------
    # Continuous Mode
    # -------------------------------------------------------------------------

    async def run_forever(self) -> None:
        """Call ``run()`` every ``config.interval`` seconds until told to stop.

        A cycle that raises is logged and counted, not propagated. Once
        ``config.max_consecutive_failures`` cycles in a row have failed the
        loop ends (``0`` means it never gives up). Cancellation,
        ``KeyboardInterrupt`` and ``SystemExit`` are never counted and
        propagate at once.
        """
        limit = self._config.max_consecutive_failures
        if self._config.metrics.enabled:
            SERVICE_INFO.info({"service": self.SERVICE_NAME})
        self._logger.info(
            "run_forever_started",
            interval=self._config.interval,
            max_consecutive_failures=limit,
        )

        failures = 0
        while self.is_running:
            if await self._run_cycle():
                failures = 0
            else:
                failures += 1
                self.set_gauge("consecutive_failures", failures)
                if limit and failures >= limit:
                    self._logger.critical(
                        "max_consecutive_failures_reached", failures=failures, limit=limit
                    )
                    break

            if await self.wait(self._config.interval):
                break

        self._logger.info("run_forever_stopped")

    async def _run_cycle(self) -> bool:
        """Run one cycle under the error boundary; ``True`` on success."""
        started = time.monotonic()
        try:
            await self.run()
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:  # noqa: BLE001
            self.inc_counter("cycles_failed")
            self.inc_counter(f"errors_{type(e).__name__}")
            self._logger.error("run_cycle_error", error=str(e), error_type=type(e).__name__)
            return False

        if self._config.metrics.enabled:
            CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(
                time.monotonic() - started
            )
        self.inc_counter("cycles_success")
        self.set_gauge("last_cycle_timestamp", time.time())
        self.set_gauge("consecutive_failures", 0)
        self._logger.info("cycle_scheduled", next_cycle_s=self._config.interval)
        return True

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> Self:
        """Build the service from a YAML file; *kwargs* go to ``__init__``."""
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Build the service from a mapping validated against ``CONFIG_CLASS``.

        Raises:
            pydantic.ValidationError: If *data* is not a valid configuration.
        """
        return cls(config=cast("ConfigT", cls.CONFIG_CLASS(**data)), **kwargs)

    async def __aenter__(self) -> Self:
        self._shutdown_event.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set this service's gauge *name*; does nothing with metrics disabled."""
        if self._config.metrics.enabled:
            SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Add *value* to this service's counter *name*; does nothing with metrics disabled."""
        if self._config.metrics.enabled:
            SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)
