"""
Unit tests for services.discovery.service module.

Tests:
- Relay selection (core only, core + directory sample, directory fallback)
- Directory fetch error translation and fallback to core relays
- discover() merge result, relays_searched, and empty relay list
- write_report() atomic JSON output and error handling
- run() end-to-end cycle with output toggle
"""

import json
import random
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from blossomwatch.core.exceptions import ConfigurationError, OutputError, ProtocolError
from blossomwatch.models import DiscoveryReport
from blossomwatch.models.constants import ServiceName
from blossomwatch.services.discovery import Discovery, DiscoveryConfig
from tests.conftest import make_event, make_record
from tests.unit.services.discovery.conftest import make_discovery


QUERY_RELAYS = "blossomwatch.services.discovery.service.query_relays"


# ============================================================================
# Class attributes
# ============================================================================


class TestClassAttributes:
    def test_service_name(self):
        assert Discovery.SERVICE_NAME == ServiceName.DISCOVERY

    def test_config_class(self):
        assert Discovery.CONFIG_CLASS is DiscoveryConfig

    def test_default_construction(self):
        service = Discovery()
        assert service.config.query.concurrency == 6


# ============================================================================
# Relay selection
# ============================================================================


class TestSelectRelays:
    async def test_core_only_when_directory_disabled(self, tmp_path):
        service = make_discovery(tmp_path)
        with patch.object(service, "fetch_directory_relays", new=AsyncMock()) as fetch:
            relays = await service.select_relays()
        assert relays == ["wss://core-a.example.com", "wss://core-b.example.com"]
        fetch.assert_not_called()

    async def test_core_first_then_sample(self, tmp_path):
        service = make_discovery(tmp_path, directory={"enabled": True, "max_additional": 2})
        candidates = [f"wss://extra{i}.example.com" for i in range(5)]
        with patch.object(service, "fetch_directory_relays", new=AsyncMock(return_value=candidates)):
            relays = await service.select_relays()
        assert relays[:2] == ["wss://core-a.example.com", "wss://core-b.example.com"]
        assert len(relays) == 4
        assert set(relays[2:]) <= set(candidates)

    async def test_sample_skips_core_duplicates(self, tmp_path):
        service = make_discovery(tmp_path, directory={"enabled": True})
        candidates = ["wss://core-a.example.com/", "wss://extra.example.com"]
        with patch.object(service, "fetch_directory_relays", new=AsyncMock(return_value=candidates)):
            relays = await service.select_relays()
        assert relays == [
            "wss://core-a.example.com",
            "wss://core-b.example.com",
            "wss://extra.example.com",
        ]

    async def test_zero_max_additional_skips_fetch(self, tmp_path):
        service = make_discovery(tmp_path, directory={"enabled": True, "max_additional": 0})
        with patch.object(service, "fetch_directory_relays", new=AsyncMock()) as fetch:
            await service.select_relays()
        fetch.assert_not_called()

    async def test_seeded_rng(self, tmp_path):
        candidates = [f"wss://extra{i}.example.com" for i in range(20)]
        config = make_discovery(tmp_path, directory={"enabled": True, "max_additional": 3}).config

        picks = []
        for _ in range(2):
            service = Discovery(config=config, rng=random.Random(7))
            with patch.object(
                service, "fetch_directory_relays", new=AsyncMock(return_value=candidates)
            ):
                picks.append(await service.select_relays())
        assert picks[0] == picks[1]


# ============================================================================
# Directory fetch
# ============================================================================


class TestFetchDirectoryRelays:
    async def test_returns_urls(self, tmp_path, fake_directory):
        directory, url = fake_directory
        directory.payload = ["wss://a.example.com", "wss://b.example.com", 5]
        service = make_discovery(tmp_path, directory={"enabled": True, "url": url})

        assert await service.fetch_directory_relays() == [
            "wss://a.example.com",
            "wss://b.example.com",
        ]

    async def test_custom_jmespath(self, tmp_path, fake_directory):
        directory, url = fake_directory
        directory.payload = {"relays": [{"url": "wss://a.example.com"}]}
        service = make_discovery(
            tmp_path, directory={"enabled": True, "url": url, "jmespath": "relays[*].url"}
        )
        assert await service.fetch_directory_relays() == ["wss://a.example.com"]

    async def test_http_error_falls_back(self, tmp_path, fake_directory, caplog):
        directory, url = fake_directory
        directory.status = 503
        service = make_discovery(tmp_path, directory={"enabled": True, "url": url})

        assert await service.fetch_directory_relays() == []
        record = next(r for r in caplog.records if r.getMessage() == "directory_fetch_failed")
        assert record.structured_kv["error_type"] == "ConnectivityError"

    async def test_invalid_json_falls_back(self, tmp_path, fake_directory, caplog):
        directory, url = fake_directory
        directory.raw_body = b"<html>maintenance</html>"
        service = make_discovery(tmp_path, directory={"enabled": True, "url": url})

        assert await service.fetch_directory_relays() == []
        record = next(r for r in caplog.records if r.getMessage() == "directory_fetch_failed")
        assert record.structured_kv["error_type"] == "ProtocolError"

    async def test_oversized_body_falls_back(self, tmp_path, fake_directory):
        directory, url = fake_directory
        directory.payload = [f"wss://relay{i}.example.com" for i in range(200)]
        service = make_discovery(
            tmp_path, directory={"enabled": True, "url": url, "max_response_size": 1024}
        )
        assert await service.fetch_directory_relays() == []

    async def test_unexpected_payload_type(self, tmp_path, fake_directory):
        directory, url = fake_directory
        directory.payload = "wss://a.example.com"
        service = make_discovery(tmp_path, directory={"enabled": True, "url": url})

        async with aiohttp.ClientSession() as session:
            with pytest.raises(ProtocolError, match="payload type"):
                await service._fetch_directory(session)

    async def test_timeout_falls_back(self, tmp_path, fake_directory, caplog):
        directory, url = fake_directory
        directory.delay = 1.0
        service = make_discovery(
            tmp_path,
            directory={"enabled": True, "url": url, "timeout": 0.2, "connect_timeout": 0.2},
        )

        assert await service.fetch_directory_relays() == []
        record = next(r for r in caplog.records if r.getMessage() == "directory_fetch_failed")
        assert record.structured_kv["error_type"] == "RequestTimeoutError"

    async def test_unreachable_falls_back(self, tmp_path, unused_tcp_port):
        service = make_discovery(
            tmp_path,
            directory={"enabled": True, "url": f"http://127.0.0.1:{unused_tcp_port}/v1/online"},
        )
        assert await service.fetch_directory_relays() == []


# ============================================================================
# discover()
# ============================================================================


class TestDiscover:
    async def test_merges_results(self, tmp_path):
        core = ["wss://a.example.com", "wss://b.example.com", "wss://c.example.com"]
        service = make_discovery(tmp_path, relays={"core": core})
        results = [
            [make_record("https://x.example.com", 100), make_record("https://y.example.com", 200)],
            [make_record("https://x.example.com", 150)],
            [],
        ]
        with patch(QUERY_RELAYS, new=AsyncMock(return_value=results)) as query:
            report = await service.discover()

        assert report.servers == ["https://y.example.com", "https://x.example.com"]
        assert [r.created_at for r in report.records] == [200, 150]
        assert report.relays_searched == 3
        assert report.success is True
        query.assert_awaited_once_with(
            core,
            concurrency=2,
            timeout=1.0,
            kind=36363,
            limit=500,
        )

    async def test_no_servers_is_success(self, tmp_path):
        service = make_discovery(tmp_path)
        with patch(QUERY_RELAYS, new=AsyncMock(return_value=[[], []])):
            report = await service.discover()
        assert report.count == 0
        assert report.success is True
        assert report.relays_searched == 2

    async def test_empty_relay_list_raises(self, tmp_path):
        service = make_discovery(tmp_path, relays={"core": []})
        with (
            patch(QUERY_RELAYS, new=AsyncMock()) as query,
            pytest.raises(ConfigurationError, match="no relays"),
        ):
            await service.discover()
        query.assert_not_called()

    async def test_directory_failure_uses_core(self, tmp_path, fake_directory):
        directory, url = fake_directory
        directory.status = 500
        service = make_discovery(tmp_path, directory={"enabled": True, "url": url})

        with patch(QUERY_RELAYS, new=AsyncMock(return_value=[[make_record()], []])) as query:
            report = await service.discover()

        assert query.await_args.args[0] == ["wss://core-a.example.com", "wss://core-b.example.com"]
        assert report.success is True
        assert report.relays_searched == 2
        assert report.count == 1

    async def test_against_fake_relays(self, tmp_path, fake_relay):
        relay, url = fake_relay
        relay.events = [
            make_event("https://x.example.com", created_at=100),
            make_event("https://x.example.com", created_at=300),
            make_event("http://insecure.example.com", created_at=500),
        ]
        service = make_discovery(tmp_path)

        # Local relay URLs are not valid core relays, so point the fan-out at the fake
        async def redirect(relays, **kwargs):
            from blossomwatch.utils.protocol import query_relays

            return await query_relays([url] * len(relays), **kwargs)

        with patch(QUERY_RELAYS, side_effect=redirect):
            report = await service.discover()

        assert report.servers == ["https://x.example.com"]
        assert report.records[0].created_at == 300

    async def test_sets_metrics_when_enabled(self, tmp_path):
        service = make_discovery(tmp_path, metrics={"enabled": True})
        results = [[make_record("https://x.example.com", 1)], []]
        with (
            patch(QUERY_RELAYS, new=AsyncMock(return_value=results)),
            patch.object(service, "set_gauge") as set_gauge,
        ):
            await service.discover()
        set_gauge.assert_any_call("relays_searched", 2)
        set_gauge.assert_any_call("servers_found", 1)
        set_gauge.assert_any_call("relays_with_servers", 1)


# ============================================================================
# write_report()
# ============================================================================


class TestWriteReport:
    def _report(self) -> DiscoveryReport:
        return DiscoveryReport(
            records=(make_record("https://x.example.com", 200),),
            relays_searched=4,
        )

    def test_writes_json(self, tmp_path):
        service = make_discovery(tmp_path)
        path = service.write_report(self._report())

        data = json.loads(path.read_text())
        assert data["success"] is True
        assert data["count"] == 1
        assert data["relays_searched"] == 4
        assert data["servers"] == ["https://x.example.com"]
        assert data["timestamp"].endswith("Z")
        assert "details" not in data

    def test_include_details(self, tmp_path):
        service = make_discovery(tmp_path, output={"include_details": True})
        data = json.loads(service.write_report(self._report()).read_text())
        assert data["details"][0]["created_at"] == 200

    def test_explicit_path_and_parent_creation(self, tmp_path):
        service = make_discovery(tmp_path)
        target = tmp_path / "nested" / "dir" / "servers.json"
        assert service.write_report(self._report(), target) == target
        assert target.exists()

    def test_replaces_existing_file_without_leftovers(self, tmp_path):
        service = make_discovery(tmp_path)
        target = tmp_path / "BlossomListOutput.json"
        target.write_text("stale")

        service.write_report(self._report())

        assert json.loads(target.read_text())["count"] == 1
        assert sorted(p.name for p in tmp_path.iterdir()) == ["BlossomListOutput.json"]

    def test_unwritable_destination(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        service = make_discovery(tmp_path)

        with pytest.raises(OutputError, match="cannot write report"):
            service.write_report(self._report(), blocker / "servers.json")


# ============================================================================
# run()
# ============================================================================


class TestRun:
    async def test_run_writes_output(self, tmp_path):
        service = make_discovery(tmp_path)
        with patch(QUERY_RELAYS, new=AsyncMock(return_value=[[make_record()], []])):
            await service.run()

        data = json.loads((tmp_path / "BlossomListOutput.json").read_text())
        assert data["servers"] == ["https://cdn.example.com"]

    async def test_run_without_output(self, tmp_path):
        service = make_discovery(tmp_path, output={"enabled": False})
        with patch(QUERY_RELAYS, new=AsyncMock(return_value=[[], []])):
            await service.run()
        assert not (tmp_path / "BlossomListOutput.json").exists()

    async def test_run_propagates_configuration_error(self, tmp_path):
        service = make_discovery(tmp_path, relays={"core": []})
        with pytest.raises(ConfigurationError):
            await service.run()
