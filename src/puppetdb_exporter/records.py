"""
Normalized record types consumed by the snapshot aggregator.

These are internal types, not API models. The PuppetDB client converts
its pydantic response types (see puppetdb_exporter.types) into these,
replacing JSON nulls with empty strings so the aggregator only has to
test for emptiness.

Records are rebuilt every scrape cycle and never outlive it.
"""

from dataclasses import dataclass

@dataclass(frozen=True)
class NodeRecord:
    """
    Latest reporting state of one managed host.

    Attributes:
        certname: Unique host identifier.
        deactivated: Deactivation timestamp, "" when the node is active.
        report_environment: Environment of the latest report (may be "").
        report_timestamp: Latest report time as "YYYY-MM-DDTHH:MM:SSZ",
            "" when the node never reported.
        latest_report_status: "changed", "unchanged", "failed" or "".
        latest_report_hash: Hash of the latest report, "" when there is
            no report to fetch metrics for.
    """

    certname: str
    deactivated: str = ""
    report_environment: str = ""
    report_timestamp: str = ""
    latest_report_status: str = ""
    latest_report_hash: str = ""

    @property
    def is_deactivated(self) -> bool:
        return self.deactivated != ""


@dataclass(frozen=True)
class ReportMetric:
    """
    One measurement attached to a report.

    Attributes:
        category: Namespace of the metric ("resources", "time", "changes",
            "events").
        name: Raw metric name, e.g. "config_retrieval".
        value: Numeric value.
    """

    category: str
    name: str
    value: float
