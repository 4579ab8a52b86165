"""Command line interface.

``--once`` performs a single discovery session, writes the report and exits;
this is what a cron job or CI step wants. Without it the service keeps
refreshing the report every ``interval`` seconds and, if enabled, serves
Prometheus metrics until SIGINT or SIGTERM.

Exit status: ``0`` on success, ``1`` on a failed session or bad
configuration, ``130`` when interrupted.

Examples:
    ```bash
    blossomwatch --once
    blossomwatch --once --output public/servers.json
    python -m blossomwatch --config config/discovery.yaml --log-level DEBUG
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from blossomwatch.core import start_metrics_server
from blossomwatch.core.logger import Logger, StructuredFormatter
from blossomwatch.core.yaml import load_yaml
from blossomwatch.services.discovery import Discovery


DEFAULT_CONFIG = Path("config") / "discovery.yaml"

logger = Logger("cli")


async def _run_once(service: Discovery) -> int:
    try:
        async with service:
            await service.run()
    except Exception as e:  # noqa: BLE001
        logger.error("discovery_failed", error=str(e), error_type=type(e).__name__)
        return 1
    logger.info("discovery_completed")
    return 0


async def _run_continuously(service: Discovery) -> int:
    metrics = service.config.metrics
    metrics_server = await start_metrics_server(metrics)
    if metrics.enabled:
        logger.info("metrics_server_started", host=metrics.host, port=metrics.port, path=metrics.path)

    def on_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, on_signal, sig)

    try:
        async with service:
            await service.run_forever()
    except Exception as e:  # noqa: BLE001
        logger.error("discovery_failed", error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await metrics_server.stop()
    return 0


async def run_service(service_dict: dict[str, Any], *, once: bool) -> int:
    """Build the discovery service from *service_dict* and run it.

    An empty mapping means built-in defaults. Returns the process exit code.
    """
    service = Discovery.from_dict(service_dict) if service_dict else Discovery()
    if once:
        return await _run_once(service)
    return await _run_continuously(service)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="blossomwatch",
        description="Discover Blossom media servers announced on Nostr relays",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"YAML service configuration (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single discovery session and exit",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Where to write the report (overrides output.path)",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Send all records to stderr as ``level name event key=value ...``."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Like ``load_yaml`` but a missing file means defaults."""
    if path.exists():
        return load_yaml(path)
    logger.warning("config_not_found", path=str(path))
    return {}


def _apply_output_override(service_dict: dict[str, Any], output: Path | None) -> None:
    if output is not None:
        service_dict.setdefault("output", {})["path"] = str(output)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        service_dict = _load_yaml_dict(args.config)
        _apply_output_override(service_dict, args.output)
        return await run_service(service_dict, once=args.once)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130
    except Exception as e:  # noqa: BLE001
        # Unreadable YAML or a config that fails validation
        logger.error("startup_failed", error=str(e), error_type=type(e).__name__)
        return 1


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
