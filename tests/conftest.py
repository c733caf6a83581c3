"""Shared fixtures for exporter tests."""

import pytest

from puppetdb_exporter.records import NodeRecord, ReportMetric
from puppetdb_exporter.registry import MetricRegistry


class StubClient:
    """In-memory client implementing PuppetDBClientProtocol."""

    def __init__(
        self,
        nodes: list[NodeRecord] | None = None,
        report_metrics: dict[str, list[ReportMetric]] | None = None,
        nodes_error: Exception | None = None,
        metrics_errors: dict[str, Exception] | None = None,
    ):
        self.nodes = nodes or []
        self.report_metrics = report_metrics or {}
        self.nodes_error = nodes_error
        self.metrics_errors = metrics_errors or {}
        self.get_nodes_calls = 0
        self.requested_hashes: list[str] = []

    async def get_nodes(self) -> list[NodeRecord]:
        self.get_nodes_calls += 1
        if self.nodes_error is not None:
            raise self.nodes_error
        return list(self.nodes)

    async def get_report_metrics(self, report_hash: str) -> list[ReportMetric]:
        self.requested_hashes.append(report_hash)
        if report_hash in self.metrics_errors:
            raise self.metrics_errors[report_hash]
        return list(self.report_metrics.get(report_hash, []))


@pytest.fixture
def metrics():
    """Fresh metric registry, isolated from prometheus_client's global one."""
    return MetricRegistry()


@pytest.fixture
def stub_client():
    return StubClient()
