"""
Gauge collections exported by the PuppetDB exporter.

MetricRegistry owns the six fixed gauge collections and a private
prometheus_client CollectorRegistry they are registered in. It is
constructed explicitly and handed to the exposition endpoint; nothing
is registered in prometheus_client's global REGISTRY.

Collections are addressed by a short key (e.g. "report_resources"); the
exported metric names carry the "puppetdb_" / "puppet_" namespaces.

prometheus_client guards every gauge value with a lock, so collect()
from the exposition endpoint can run while the scrape loop calls set().
"""

from collections.abc import Iterator
from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Gauge
from prometheus_client.metrics_core import Metric

from puppetdb_exporter.exceptions import LabelMismatchError, UnknownCollectionError

REPORT_STATUS_COUNT = "report_status_count"
REPORT = "report"

REPORT_METRIC_LABELS = ("name", "environment", "host")


@dataclass(frozen=True)
class GaugeSpec:
    """Schema of one gauge collection."""

    namespace: str
    name: str
    documentation: str
    labels: tuple[str, ...]


GAUGE_SPECS: dict[str, GaugeSpec] = {
    REPORT_STATUS_COUNT: GaugeSpec(
        "puppetdb",
        "node_report_status_count",
        "Total count of reports status by type",
        ("status",),
    ),
    "report_resources": GaugeSpec(
        "puppet",
        "report_resources",
        "Total count of resources per status",
        REPORT_METRIC_LABELS,
    ),
    "report_time": GaugeSpec(
        "puppet",
        "report_time",
        "Total execution time per resource type",
        REPORT_METRIC_LABELS,
    ),
    "report_changes": GaugeSpec(
        "puppet",
        "report_changes",
        "Total count of resources changed",
        REPORT_METRIC_LABELS,
    ),
    "report_events": GaugeSpec(
        "puppet",
        "report_events",
        "Total count of resources per event",
        REPORT_METRIC_LABELS,
    ),
    REPORT: GaugeSpec(
        "puppet",
        "report",
        "Timestamp of latest report",
        ("environment", "host", "deactivated"),
    ),
}

# Report metric categories that map onto a "report_<category>" collection
REPORT_METRIC_CATEGORIES = frozenset({"resources", "time", "changes", "events"})


class MetricRegistry:
    """
    Fixed set of labeled gauges, surviving across scrape cycles.

    Example:
        metrics = MetricRegistry()
        metrics.set("report_status_count", {"status": "failed"}, 3)
        app.mount("/metrics", make_asgi_app(registry=metrics.registry))
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._gauges: dict[str, Gauge] = {
            key: Gauge(
                spec.name,
                spec.documentation,
                list(spec.labels),
                namespace=spec.namespace,
                registry=self.registry,
            )
            for key, spec in GAUGE_SPECS.items()
        }

    @property
    def collections(self) -> tuple[str, ...]:
        return tuple(self._gauges)

    @staticmethod
    def collection_for_category(category: str) -> str | None:
        """
        Map a report metric category to its collection key.

        Categories come from PuppetDB and are not trusted: only the four
        known report metric categories map to a collection. Anything else
        (including "status_count" or "") returns None.
        """
        if category in REPORT_METRIC_CATEGORIES:
            return f"report_{category}"
        return None

    def set(self, collection: str, labels: dict[str, str], value: float) -> None:
        """
        Set the value of one label combination, overwriting the previous one.

        Raises:
            UnknownCollectionError: If collection is not one of the six keys.
            LabelMismatchError: If the label names differ from the schema.
        """
        gauge = self._gauge(collection)
        expected = GAUGE_SPECS[collection].labels
        if set(labels) != set(expected):
            raise LabelMismatchError(collection, expected, tuple(labels))
        gauge.labels(**labels).set(value)

    def value(self, collection: str, labels: dict[str, str]) -> float | None:
        """Return the current value of a label combination, None if never set."""
        self._gauge(collection)
        spec = GAUGE_SPECS[collection]
        return self.registry.get_sample_value(
            f"{spec.namespace}_{spec.name}", labels
        )

    def describe(self) -> Iterator[Metric]:
        """Yield one metric descriptor per collection."""
        for gauge in self._gauges.values():
            yield from gauge.describe()

    def collect(self) -> Iterator[Metric]:
        """Yield every collection with all of its current samples."""
        for gauge in self._gauges.values():
            yield from gauge.collect()

    def _gauge(self, collection: str) -> Gauge:
        try:
            return self._gauges[collection]
        except KeyError:
            raise UnknownCollectionError(collection) from None
