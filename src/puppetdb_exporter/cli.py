"""PuppetDB exporter CLI.

This module provides the `puppetdb-exporter` command:
- run: Start the scrape loop and serve metrics over HTTP
- check: Run a single scrape cycle and print the resulting metrics

Options fall back to PUPPETDB_EXPORTER_* environment variables through
Settings; an option given on the command line always wins.
"""

import asyncio
import logging

import typer
import uvicorn
from prometheus_client import generate_latest
from pydantic import ValidationError

from puppetdb_exporter import __version__
from puppetdb_exporter.config import Settings
from puppetdb_exporter.exceptions import ConfigError
from puppetdb_exporter.loop import ScrapeLoop
from puppetdb_exporter.puppetdb_client import PuppetDBClient, create_http_client
from puppetdb_exporter.registry import MetricRegistry
from puppetdb_exporter.server import create_app

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="puppetdb-exporter",
    help="Prometheus exporter for PuppetDB",
    no_args_is_help=True,
)


def load_settings(**overrides) -> Settings:
    """Load settings from the environment, applying non-None overrides."""
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}")
        raise typer.Exit(1)


def configure_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("run")
def run(
    puppetdb_url: str = typer.Option(
        None, "--puppetdb-url", "-u", help="PuppetDB base URL (e.g., https://puppetdb:8081)"
    ),
    cert_file: str = typer.Option(None, "--cert-file", help="Client certificate (PEM)"),
    key_file: str = typer.Option(None, "--key-file", help="Client private key (PEM)"),
    ca_file: str = typer.Option(None, "--ca-file", help="CA certificate (PEM)"),
    ssl_skip_verify: bool | None = typer.Option(
        None, "--ssl-skip-verify/--ssl-verify", help="Skip PuppetDB certificate verification"
    ),
    scrape_interval: str = typer.Option(
        None, "--scrape-interval", "-i", help="Duration between scrapes (e.g., 5s)"
    ),
    unreported_node: str = typer.Option(
        None, "--unreported-node", help="Report age after which a node counts as unreported (e.g., 2h)"
    ),
    listen_host: str = typer.Option(None, "--listen-host", help="Address to listen on"),
    listen_port: int = typer.Option(None, "--listen-port", "-p", help="Port to listen on"),
    metric_path: str = typer.Option(None, "--metric-path", help="Path under which to expose metrics"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """
    Run the exporter.

    Scrapes PuppetDB at the configured interval and serves the metrics
    until interrupted with Ctrl+C.
    """
    settings = load_settings(
        puppetdb_url=puppetdb_url,
        cert_file=cert_file,
        key_file=key_file,
        ca_file=ca_file,
        ssl_skip_verify=ssl_skip_verify,
        scrape_interval=scrape_interval,
        unreported_node=unreported_node,
        listen_host=listen_host,
        listen_port=listen_port,
        metric_path=metric_path,
    )
    configure_logging(settings.log_level, verbose)

    try:
        exporter = create_app(settings)
    except ConfigError as e:
        logger.critical(f"Cannot start exporter: {e}")
        raise typer.Exit(1)

    logger.info(f"Starting PuppetDB exporter {__version__} for {settings.puppetdb_url}")
    uvicorn.run(
        exporter,
        host=settings.listen_host,
        port=settings.listen_port,
        log_level=settings.log_level.lower(),
    )


@app.command("check")
def check(
    puppetdb_url: str = typer.Option(None, "--puppetdb-url", "-u", help="PuppetDB base URL"),
    unreported_node: str = typer.Option(None, "--unreported-node", help="Unreported duration"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run one scrape cycle and print the metrics it produced."""
    settings = load_settings(puppetdb_url=puppetdb_url, unreported_node=unreported_node)
    configure_logging(settings.log_level, verbose)

    async def _check() -> MetricRegistry:
        metrics = MetricRegistry()
        async with create_http_client(
            settings.puppetdb_url,
            ca_file=settings.ca_file,
            cert_file=settings.cert_file,
            key_file=settings.key_file,
            skip_verify=settings.ssl_skip_verify,
            timeout=settings.http_timeout,
        ) as http:
            loop = ScrapeLoop(
                PuppetDBClient(http=http),
                metrics,
                interval_seconds=settings.scrape_interval_seconds,
                unreported=settings.unreported_node,
            )
            if await loop.run_cycle() is None:
                raise typer.Exit(1)
        return metrics

    try:
        metrics = asyncio.run(_check())
    except ConfigError as e:
        logger.critical(f"Cannot run check: {e}")
        raise typer.Exit(1)

    print(generate_latest(metrics.registry).decode(), end="")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
