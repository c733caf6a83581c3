"""
Tests for the scrape loop.

Verifies that ScrapeLoop:
- Refuses to start with an invalid unreported duration
- Contains node list fetch failures without touching gauges
- Runs cycles sequentially until stop() is called
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import StubClient
from puppetdb_exporter.exceptions import InvalidDurationError, PuppetDBError
from puppetdb_exporter.loop import ScrapeLoop
from puppetdb_exporter.records import NodeRecord


def reported_node(certname: str = "a", status: str = "changed") -> NodeRecord:
    return NodeRecord(
        certname=certname,
        report_environment="production",
        report_timestamp="2024-01-01T00:00:00Z",
        latest_report_status=status,
    )


class TestConstruction:
    """Tests for ScrapeLoop.__init__."""

    def test_parses_unreported_threshold(self, stub_client, metrics):
        loop = ScrapeLoop(stub_client, metrics, interval_seconds=1.0, unreported="1h30m")

        assert loop.unreported_threshold == timedelta(minutes=90)
        assert loop.aggregator.unreported_threshold == timedelta(minutes=90)
        assert loop.interval == 1.0

    def test_invalid_unreported_duration_is_fatal(self, stub_client, metrics):
        with pytest.raises(InvalidDurationError):
            ScrapeLoop(stub_client, metrics, interval_seconds=1.0, unreported="bogus")

        assert stub_client.get_nodes_calls == 0


class TestRunCycle:
    """Tests for a single scrape cycle."""

    @pytest.mark.asyncio
    async def test_cycle_updates_metrics(self, metrics):
        client = StubClient(nodes=[reported_node("a"), reported_node("b", "failed")])
        loop = ScrapeLoop(client, metrics, interval_seconds=1.0)

        summary = await loop.run_cycle()

        assert summary is not None
        assert summary.nodes == 2
        assert loop.last_summary is summary
        assert loop.last_cycle_at is not None
        assert metrics.value("report_status_count", {"status": "failed"}) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_previous_values(self, metrics, caplog):
        client = StubClient(nodes=[reported_node("a")])
        loop = ScrapeLoop(client, metrics, interval_seconds=1.0)
        await loop.run_cycle()
        labels = {"environment": "production", "host": "a", "deactivated": "false"}
        before = metrics.value("report", labels)

        client.nodes_error = PuppetDBError("/pdb/query/v4/nodes", "HTTP 503")
        summary = await loop.run_cycle()

        assert summary is None
        assert metrics.value("report", labels) == before == 1704067200
        assert metrics.value("report_status_count", {"status": "changed"}) == 1
        assert "Failed to get nodes" in caplog.text
        assert loop.cycles == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_with_mock_client(self, metrics):
        client = AsyncMock()
        client.get_nodes.side_effect = PuppetDBError("/pdb/query/v4/nodes", "timeout")
        loop = ScrapeLoop(client, metrics, interval_seconds=1.0)

        assert await loop.run_cycle() is None
        client.get_report_metrics.assert_not_called()


class TestRun:
    """Tests for the long-running loop."""

    @pytest.mark.asyncio
    async def test_stop_ends_run(self, metrics):
        client = StubClient(nodes=[reported_node()])
        loop = ScrapeLoop(client, metrics, interval_seconds=60.0)

        task = asyncio.create_task(loop.run())
        await asyncio.sleep(0.05)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert loop.stopped
        assert client.get_nodes_calls == 1

    @pytest.mark.asyncio
    async def test_runs_multiple_cycles(self, metrics):
        client = StubClient(nodes=[reported_node()])
        loop = ScrapeLoop(client, metrics, interval_seconds=0.01)

        task = asyncio.create_task(loop.run())
        await asyncio.sleep(0.2)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert client.get_nodes_calls >= 2

    @pytest.mark.asyncio
    async def test_survives_failing_cycles(self, metrics):
        client = StubClient(nodes_error=PuppetDBError("/pdb/query/v4/nodes", "down"))
        loop = ScrapeLoop(client, metrics, interval_seconds=0.01)

        task = asyncio.create_task(loop.run())
        await asyncio.sleep(0.1)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert client.get_nodes_calls >= 2
        assert loop.last_summary is None

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_loop(self, metrics):
        client = AsyncMock()
        client.get_nodes.side_effect = [RuntimeError("boom"), [reported_node()], []]
        loop = ScrapeLoop(client, metrics, interval_seconds=0.01)

        task = asyncio.create_task(loop.run())
        await asyncio.sleep(0.1)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert client.get_nodes.call_count >= 2
        assert loop.last_summary is not None

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self, metrics):
        active = 0
        max_active = 0

        class SlowClient(StubClient):
            async def get_nodes(self):
                nonlocal active, max_active
                active += 1
                max_active = max(max_active, active)
                await asyncio.sleep(0.02)
                active -= 1
                return await super().get_nodes()

        client = SlowClient(nodes=[reported_node()])
        loop = ScrapeLoop(client, metrics, interval_seconds=0.0)

        task = asyncio.create_task(loop.run())
        await asyncio.sleep(0.15)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert max_active == 1
        assert client.get_nodes_calls >= 2
