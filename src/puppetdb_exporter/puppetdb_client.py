"""
PuppetDB query API client.

This module provides the PuppetDBClient class for querying node and
report state from the PuppetDB v4 query API.

PuppetDBClient receives an injected httpx.AsyncClient with base_url set
to the PuppetDB server. Errors are raised loudly as PuppetDBError; the
scrape loop decides whether they abort a cycle or a single node.

create_http_client() builds that httpx client, including the mutual TLS
setup PuppetDB requires on its SSL port.

PuppetDB API documentation:
- https://www.puppet.com/docs/puppetdb/latest/api/query/v4/nodes
- https://www.puppet.com/docs/puppetdb/latest/api/query/v4/reports
"""

import logging
import ssl
from dataclasses import dataclass
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from puppetdb_exporter.exceptions import ClientConfigError, PuppetDBError
from puppetdb_exporter.records import NodeRecord, ReportMetric
from puppetdb_exporter.types import (
    PuppetDBNodesResponse,
    PuppetDBReportMetricsResponse,
)

logger = logging.getLogger(__name__)

NODES_PATH = "/pdb/query/v4/nodes"
REPORT_METRICS_PATH = "/pdb/query/v4/reports/{hash}/metrics"


@dataclass
class PuppetDBClient:
    """
    PuppetDB API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to PuppetDB.

    Example:
        async with create_http_client("https://puppetdb:8081", ...) as http:
            client = PuppetDBClient(http=http)
            nodes = await client.get_nodes()
    """

    http: httpx.AsyncClient

    async def get_nodes(self) -> list[NodeRecord]:
        """
        Get every node known to PuppetDB.

        Returns:
            List of NodeRecord with nulls normalized to "".

        Raises:
            PuppetDBError: On transport errors, HTTP errors or malformed data.
        """
        data = await self._get(NODES_PATH, PuppetDBNodesResponse)
        return [node.to_record() for node in data.root]

    async def get_report_metrics(self, report_hash: str) -> list[ReportMetric]:
        """
        Get the metrics of one report.

        Args:
            report_hash: The latest_report_hash of a node.

        Returns:
            List of ReportMetric in the order PuppetDB returned them.

        Raises:
            PuppetDBError: On transport errors, HTTP errors or malformed data.
        """
        path = REPORT_METRICS_PATH.format(hash=quote(report_hash, safe=""))
        data = await self._get(path, PuppetDBReportMetricsResponse)
        return [metric.to_record() for metric in data.root]

    async def _get(self, path, model):
        try:
            response = await self.http.get(path)
            response.raise_for_status()
            return model.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise PuppetDBError(path, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise PuppetDBError(path, str(e) or type(e).__name__) from e
        except (ValidationError, ValueError) as e:
            raise PuppetDBError(path, f"malformed response: {e}") from e


def build_ssl_context(
    ca_file: str | None = None,
    cert_file: str | None = None,
    key_file: str | None = None,
    skip_verify: bool = False,
) -> ssl.SSLContext:
    """
    Build the SSL context used to talk to PuppetDB.

    Args:
        ca_file: CA bundle used to verify the server. System CAs when None.
        cert_file: Client certificate (PEM). Loaded only together with key_file.
        key_file: Client private key (PEM).
        skip_verify: Disable hostname and certificate verification.

    Raises:
        ClientConfigError: If any of the files cannot be loaded.
    """
    try:
        if skip_verify:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        else:
            context = ssl.create_default_context(cafile=ca_file or None)
        if cert_file and key_file:
            context.load_cert_chain(certfile=cert_file, keyfile=key_file)
    except (OSError, ssl.SSLError) as e:
        raise ClientConfigError(f"failed to load TLS material: {e}") from e
    return context


def create_http_client(
    url: str,
    ca_file: str | None = None,
    cert_file: str | None = None,
    key_file: str | None = None,
    skip_verify: bool = False,
    timeout: float = 10.0,
) -> httpx.AsyncClient:
    """
    Create the httpx client for a PuppetDB server.

    TLS material is only loaded for https URLs; plain http (PuppetDB's
    cleartext port 8080) uses no certificates.

    Raises:
        ClientConfigError: If the URL is not http(s) or TLS setup fails.
    """
    try:
        base_url = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ClientConfigError(f"invalid PuppetDB URL {url!r}: {e}") from e

    if base_url.scheme == "https":
        verify: ssl.SSLContext | bool = build_ssl_context(
            ca_file=ca_file,
            cert_file=cert_file,
            key_file=key_file,
            skip_verify=skip_verify,
        )
    elif base_url.scheme == "http":
        verify = True
    else:
        raise ClientConfigError(f"unsupported PuppetDB URL scheme: {url!r}")

    logger.debug(f"Creating PuppetDB client for {base_url}")
    return httpx.AsyncClient(base_url=base_url, verify=verify, timeout=timeout)
