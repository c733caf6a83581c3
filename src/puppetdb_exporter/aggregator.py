"""
Snapshot aggregation for one scrape cycle.

SnapshotAggregator turns a batch of NodeRecords into gauge updates:
- puppet_report{environment,host,deactivated}: latest report Unix time
- puppet_report_<category>{name,environment,host}: report metrics
- puppetdb_node_report_status_count{status}: nodes per status

A node is counted as "unreported" when it never reported, when it has no
status, and additionally when its latest report is older than the
unreported threshold. The last two add up: a stale node is counted once
as "unreported" and once under its own status (twice as "unreported"
when it has no status).

Errors are contained per node: a bad timestamp skips the node entirely,
a failed report metrics fetch skips only its report metrics.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx
from pydantic import ValidationError

from puppetdb_exporter.exceptions import PuppetDBError
from puppetdb_exporter.protocols import PuppetDBClientProtocol
from puppetdb_exporter.records import NodeRecord
from puppetdb_exporter.registry import REPORT, REPORT_STATUS_COUNT, MetricRegistry

logger = logging.getLogger(__name__)

UNREPORTED = "unreported"

# YYYY-MM-DDTHH:MM:SSZ with optional fractional seconds, zero padding required
REPORT_TIMESTAMP_PATTERN = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?Z",
    re.ASCII,
)


@dataclass
class CycleSummary:
    """
    Outcome of one aggregation pass.

    Attributes:
        nodes: Number of nodes processed.
        parse_errors: Nodes skipped because of an unparseable timestamp.
        fetch_errors: Nodes whose report metrics could not be fetched.
        statuses: Status counts flushed to the status gauge, including
            statuses reset to 0.
    """

    nodes: int = 0
    parse_errors: int = 0
    fetch_errors: int = 0
    statuses: dict[str, int] = field(default_factory=dict)


def parse_report_timestamp(value: str) -> datetime:
    """
    Parse a PuppetDB report timestamp as an aware UTC datetime.

    Accepts "2024-01-01T00:00:00Z" and the fractional variant PuppetDB
    emits ("2024-01-01T00:00:00.123Z"). Every field must be zero padded;
    fractions beyond microseconds are truncated.

    Raises:
        ValueError: If the string does not match the format or names an
            impossible date.
    """
    match = REPORT_TIMESTAMP_PATTERN.fullmatch(value)
    if match is None:
        raise ValueError(f"report timestamp {value!r} does not match YYYY-MM-DDTHH:MM:SSZ")

    year, month, day, hour, minute, second, fraction = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
        microsecond,
        tzinfo=timezone.utc,
    )


def format_metric_name(name: str) -> str:
    """
    Turn a raw report metric name into a display label.

    Underscores become spaces and each word gets an upper-case first
    letter: "config_retrieval" -> "Config Retrieval".
    """
    return " ".join(word[:1].upper() + word[1:] for word in name.replace("_", " ").split(" "))


class SnapshotAggregator:
    """
    Computes all gauge updates for one cycle.

    The aggregator keeps only the set of status names it flushed before,
    so statuses that disappear are reset to 0 instead of freezing at
    their last count.

    Example:
        aggregator = SnapshotAggregator(client, metrics, timedelta(hours=2))
        summary = await aggregator.aggregate(await client.get_nodes())
    """

    def __init__(
        self,
        client: PuppetDBClientProtocol,
        registry: MetricRegistry,
        unreported_threshold: timedelta,
    ) -> None:
        self.client = client
        self.registry = registry
        self.unreported_threshold = unreported_threshold
        self._known_statuses: set[str] = set()

    async def aggregate(
        self, nodes: list[NodeRecord], now: datetime | None = None
    ) -> CycleSummary:
        """
        Process every node and flush the status tally.

        Args:
            nodes: Node records fetched for this cycle.
            now: Reference time for staleness, defaults to current UTC time.

        Returns:
            CycleSummary for logging and health reporting.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        summary = CycleSummary(nodes=len(nodes))
        tally: Counter[str] = Counter()

        for node in nodes:
            await self._process_node(node, now, tally, summary)

        summary.statuses = self._flush_statuses(tally)
        return summary

    async def _process_node(
        self,
        node: NodeRecord,
        now: datetime,
        tally: Counter[str],
        summary: CycleSummary,
    ) -> None:
        deactivated = "true" if node.is_deactivated else "false"

        if not node.report_timestamp:
            tally[UNREPORTED] += 1
            return

        try:
            latest_report = parse_report_timestamp(node.report_timestamp)
            report_age = now - latest_report
            unix_seconds = int(latest_report.timestamp())
        except (ValueError, OverflowError) as e:
            logger.error(f"Failed to parse report timestamp for {node.certname}: {e}")
            summary.parse_errors += 1
            return

        self.registry.set(
            REPORT,
            {
                "environment": node.report_environment,
                "host": node.certname,
                "deactivated": deactivated,
            },
            unix_seconds,
        )

        # Age comparison instead of timestamp + threshold, which overflows near datetime.max
        if report_age > self.unreported_threshold:
            tally[UNREPORTED] += 1

        if node.latest_report_status:
            tally[node.latest_report_status] += 1
        else:
            tally[UNREPORTED] += 1

        if node.latest_report_hash:
            await self._update_report_metrics(node, summary)

    async def _update_report_metrics(
        self, node: NodeRecord, summary: CycleSummary
    ) -> None:
        try:
            metrics = await self.client.get_report_metrics(node.latest_report_hash)
        except (PuppetDBError, httpx.HTTPError, ValidationError) as e:
            logger.warning(f"Failed to get report metrics for {node.certname}: {e}")
            summary.fetch_errors += 1
            return

        for metric in metrics:
            collection = self.registry.collection_for_category(metric.category)
            if collection is None:
                logger.debug(
                    f"Skipping report metric {metric.name!r} of {node.certname}: "
                    f"unknown category {metric.category!r}"
                )
                continue
            self.registry.set(
                collection,
                {
                    "name": format_metric_name(metric.name),
                    "environment": node.report_environment,
                    "host": node.certname,
                },
                metric.value,
            )

    def _flush_statuses(self, tally: Counter[str]) -> dict[str, int]:
        flushed = {status: 0 for status in self._known_statuses - set(tally)}
        flushed.update(tally)
        for status, count in flushed.items():
            self.registry.set(REPORT_STATUS_COUNT, {"status": status}, count)
        self._known_statuses.update(tally)
        return flushed
