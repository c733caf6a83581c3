"""
Client protocol consumed by the snapshot aggregator and scrape loop.

Any object providing these two coroutines can feed the exporter. The
production implementation is PuppetDBClient; tests pass stubs.
"""

from typing import Protocol, runtime_checkable

from puppetdb_exporter.records import NodeRecord, ReportMetric


@runtime_checkable
class PuppetDBClientProtocol(Protocol):
    """
    Protocol for sources of node and report state.

    Both methods raise on failure rather than returning partial data;
    callers decide how far the failure propagates.
    """

    async def get_nodes(self) -> list[NodeRecord]:
        """Fetch the current state of every node."""
        ...

    async def get_report_metrics(self, report_hash: str) -> list[ReportMetric]:
        """Fetch all metrics attached to the report with this hash."""
        ...
