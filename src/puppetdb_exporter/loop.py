"""
ScrapeLoop daemon driving the snapshot aggregator.

This module implements the scrape loop that:
- Fetches all nodes from PuppetDB every cycle
- Runs the SnapshotAggregator against them
- Waits for the configured interval, then repeats
- Stops after the in-flight cycle when stop() is called or on SIGINT/SIGTERM

Cycles never overlap. The period is processing time plus the interval;
there is no skew compensation, so the period drifts above the interval
under load.
"""

import asyncio
import functools
import logging
import signal
from datetime import datetime, timezone

import httpx
from pydantic import ValidationError

from puppetdb_exporter.aggregator import CycleSummary, SnapshotAggregator
from puppetdb_exporter.duration import parse_duration
from puppetdb_exporter.exceptions import PuppetDBError
from puppetdb_exporter.protocols import PuppetDBClientProtocol
from puppetdb_exporter.registry import MetricRegistry

logger = logging.getLogger(__name__)


class ScrapeLoop:
    """
    Long-running task that keeps the metric registry up to date.

    The unreported threshold is parsed at construction: an invalid
    duration raises InvalidDurationError and no loop is created.

    Example:
        metrics = MetricRegistry()
        loop = ScrapeLoop(client, metrics, interval_seconds=5.0, unreported="2h")
        task = asyncio.create_task(loop.run())
        ...
        loop.stop()
        await task
    """

    def __init__(
        self,
        client: PuppetDBClientProtocol,
        registry: MetricRegistry,
        interval_seconds: float = 5.0,
        unreported: str = "2h",
    ) -> None:
        """
        Initialize scrape loop.

        Args:
            client: Source of node and report state
            registry: Metric registry the cycles write into
            interval_seconds: Seconds to wait between cycles (default 5)
            unreported: Duration after which a report counts as stale

        Raises:
            InvalidDurationError: If unreported is not a valid duration
        """
        self.client = client
        self.registry = registry
        self.interval = interval_seconds
        self.unreported_threshold = parse_duration(unreported)
        self.aggregator = SnapshotAggregator(
            client, registry, self.unreported_threshold
        )
        self._shutdown = asyncio.Event()

        self.cycles = 0
        self.last_cycle_at: datetime | None = None
        self.last_summary: CycleSummary | None = None

    @property
    def stopped(self) -> bool:
        return self._shutdown.is_set()

    async def run(self, install_signal_handlers: bool = False) -> None:
        """
        Run scrape cycles until stop() is called.

        Args:
            install_signal_handlers: Register SIGINT/SIGTERM handlers that
                call stop(). Only useful when the loop owns the process.
        """
        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(
                    sig,
                    functools.partial(self._handle_signal, sig),
                )

        logger.info(
            f"Scrape loop starting (interval: {self.interval}s, "
            f"unreported after: {self.unreported_threshold})"
        )

        while not self._shutdown.is_set():
            try:
                await self.run_cycle()
            except Exception:
                # Log but don't crash; the next tick retries
                logger.exception("Scrape cycle failed")

            # Event.wait() with a timeout so stop() interrupts the sleep
            try:
                await asyncio.wait_for(
                    self._shutdown.wait(),
                    timeout=self.interval,
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Scrape loop stopped")

    def stop(self) -> None:
        """Request shutdown; the loop exits after the current cycle."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down...")
        self.stop()

    async def run_cycle(self) -> CycleSummary | None:
        """
        Run one fetch-aggregate pass.

        A node list fetch failure is logged and ends the cycle without
        touching any gauge, so previously exported values stay as they
        were until the next successful cycle.

        Returns:
            The cycle summary, or None when the node list fetch failed.
        """
        self.cycles += 1

        try:
            nodes = await self.client.get_nodes()
        except (PuppetDBError, httpx.HTTPError, ValidationError) as e:
            logger.error(f"Failed to get nodes: {e}")
            return None

        summary = await self.aggregator.aggregate(nodes)
        self.last_cycle_at = datetime.now(timezone.utc)
        self.last_summary = summary

        logger.info(
            f"Scrape complete: {summary.nodes} nodes, "
            f"{summary.parse_errors} timestamp errors, "
            f"{summary.fetch_errors} report fetch errors"
        )
        logger.debug(f"Status counts: {summary.statuses}")
        return summary
