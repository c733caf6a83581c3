"""
FastAPI application exposing the exporter's metrics.

create_app() wires the pieces together:
- a MetricRegistry owned by the app (no global prometheus registry)
- a PuppetDBClient on a TLS-configured httpx client
- a ScrapeLoop started as a background task in the lifespan

Startup configuration errors (invalid unreported duration, unusable TLS
material) raise from create_app() before anything is served.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from puppetdb_exporter import __version__
from puppetdb_exporter.config import Settings
from puppetdb_exporter.duration import parse_duration
from puppetdb_exporter.loop import ScrapeLoop
from puppetdb_exporter.protocols import PuppetDBClientProtocol
from puppetdb_exporter.puppetdb_client import PuppetDBClient, create_http_client
from puppetdb_exporter.registry import MetricRegistry

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    client: PuppetDBClientProtocol | None = None,
    metrics: MetricRegistry | None = None,
) -> FastAPI:
    """
    Build the exporter application.

    Args:
        settings: Exporter configuration, loaded from the environment if None.
        client: PuppetDB client. If None, one is created from settings and
            closed on shutdown.
        metrics: Metric registry. A fresh one is created if None.

    Raises:
        InvalidDurationError: If settings.unreported_node is invalid.
        ClientConfigError: If the PuppetDB client cannot be created.
    """
    settings = settings or Settings()
    metrics = metrics or MetricRegistry()

    # Fail on the threshold before any connection is set up
    parse_duration(settings.unreported_node)

    http: httpx.AsyncClient | None = None
    if client is None:
        http = create_http_client(
            settings.puppetdb_url,
            ca_file=settings.ca_file,
            cert_file=settings.cert_file,
            key_file=settings.key_file,
            skip_verify=settings.ssl_skip_verify,
            timeout=settings.http_timeout,
        )
        client = PuppetDBClient(http=http)

    scrape_loop = ScrapeLoop(
        client=client,
        registry=metrics,
        interval_seconds=settings.scrape_interval_seconds,
        unreported=settings.unreported_node,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the scrape loop on startup, stop it on shutdown."""
        task = asyncio.create_task(scrape_loop.run())
        logger.info(f"Serving metrics on {settings.metric_path}")

        yield

        scrape_loop.stop()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if http is not None:
            await http.aclose()

    app = FastAPI(
        title="PuppetDB Exporter",
        description="Prometheus exporter for PuppetDB node and report metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.metrics = metrics
    app.state.scrape_loop = scrape_loop

    def metrics_endpoint() -> Response:
        """Prometheus text exposition of the metric registry."""
        return Response(
            content=generate_latest(metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    app.add_api_route(settings.metric_path, metrics_endpoint, methods=["GET"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        summary = scrape_loop.last_summary
        return {
            "status": "healthy" if scrape_loop.last_cycle_at else "starting",
            "last_cycle_at": (
                scrape_loop.last_cycle_at.isoformat()
                if scrape_loop.last_cycle_at
                else None
            ),
            "cycles": scrape_loop.cycles,
            "nodes": summary.nodes if summary else 0,
        }

    return app
