"""
Prometheus exporter for PuppetDB.

Polls the PuppetDB query API for node and report state and exposes it
as Prometheus gauges:

- MetricRegistry: the six fixed gauge collections
- SnapshotAggregator: turns one batch of nodes into gauge updates
- ScrapeLoop: runs the aggregator on an interval until stopped
- PuppetDBClient: httpx-based client for the v4 query API
"""

__version__ = "0.1.0"

from puppetdb_exporter.aggregator import CycleSummary, SnapshotAggregator
from puppetdb_exporter.duration import parse_duration
from puppetdb_exporter.exceptions import (
    ClientConfigError,
    ConfigError,
    ExporterError,
    InvalidDurationError,
    LabelMismatchError,
    PuppetDBError,
    RegistryError,
    UnknownCollectionError,
)
from puppetdb_exporter.loop import ScrapeLoop
from puppetdb_exporter.protocols import PuppetDBClientProtocol
from puppetdb_exporter.puppetdb_client import PuppetDBClient, create_http_client
from puppetdb_exporter.records import NodeRecord, ReportMetric
from puppetdb_exporter.registry import MetricRegistry

__all__ = [
    "__version__",
    # Core
    "MetricRegistry",
    "SnapshotAggregator",
    "CycleSummary",
    "ScrapeLoop",
    # Client
    "PuppetDBClient",
    "PuppetDBClientProtocol",
    "create_http_client",
    # Records
    "NodeRecord",
    "ReportMetric",
    # Helpers
    "parse_duration",
    # Errors
    "ExporterError",
    "ConfigError",
    "InvalidDurationError",
    "ClientConfigError",
    "PuppetDBError",
    "RegistryError",
    "UnknownCollectionError",
    "LabelMismatchError",
]
