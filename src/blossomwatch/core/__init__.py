"""Service infrastructure: lifecycle, errors, logging, metrics and config files.

Depends only on ``blossomwatch.models``; ``blossomwatch.services`` builds on
it. Most callers want [BaseService][blossomwatch.core.base_service.BaseService],
[Logger][blossomwatch.core.logger.Logger] or one of the
[BlossomWatchError][blossomwatch.core.exceptions.BlossomWatchError] subclasses.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    BlossomWatchError,
    ConfigurationError,
    ConnectivityError,
    OutputError,
    ProtocolError,
    RequestTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "BlossomWatchError",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "OutputError",
    "ProtocolError",
    "RequestTimeoutError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
