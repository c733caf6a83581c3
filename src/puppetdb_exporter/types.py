"""
PuppetDB-specific Pydantic response types.

This module provides Pydantic models for parsing responses from the
PuppetDB query API (v4):
- GET /pdb/query/v4/nodes
- GET /pdb/query/v4/reports/<hash>/metrics

These are API response types for external data validation. Internal
types (NodeRecord, ReportMetric) are dataclasses in
puppetdb_exporter.records.

Notes:
- PuppetDB returns null for timestamps/status of nodes that never reported
- Both endpoints return a bare JSON array, hence the RootModel wrappers
- Unknown fields (facts_timestamp, cached_catalog_status, ...) are ignored
"""

from pydantic import BaseModel, ConfigDict, RootModel

from puppetdb_exporter.records import NodeRecord, ReportMetric


class PuppetDBNode(BaseModel):
    """
    Single entry from the nodes endpoint.

    Example:
    {
        "certname": "web-01.example.com",
        "deactivated": null,
        "report_environment": "production",
        "report_timestamp": "2024-01-01T00:00:00.000Z",
        "latest_report_status": "changed",
        "latest_report_hash": "0b5a7c..."
    }
    """

    model_config = ConfigDict(extra="ignore")

    certname: str
    deactivated: str | None = None
    report_environment: str | None = None
    report_timestamp: str | None = None
    latest_report_status: str | None = None
    latest_report_hash: str | None = None

    def to_record(self) -> NodeRecord:
        return NodeRecord(
            certname=self.certname,
            deactivated=self.deactivated or "",
            report_environment=self.report_environment or "",
            report_timestamp=self.report_timestamp or "",
            latest_report_status=self.latest_report_status or "",
            latest_report_hash=self.latest_report_hash or "",
        )


class PuppetDBNodesResponse(RootModel[list[PuppetDBNode]]):
    """Response from GET /pdb/query/v4/nodes."""


class PuppetDBReportMetric(BaseModel):
    """
    Single entry from the report metrics endpoint.

    Example: {"category": "time", "name": "config_retrieval", "value": 1.27}
    """

    model_config = ConfigDict(extra="ignore")

    category: str
    name: str
    value: float

    def to_record(self) -> ReportMetric:
        return ReportMetric(category=self.category, name=self.name, value=self.value)


class PuppetDBReportMetricsResponse(RootModel[list[PuppetDBReportMetric]]):
    """Response from GET /pdb/query/v4/reports/<hash>/metrics."""
