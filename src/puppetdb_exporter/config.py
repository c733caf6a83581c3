"""Environment-based configuration for the PuppetDB exporter."""

from pydantic import field_validator
from pydantic_settings import BaseSettings

from puppetdb_exporter.duration import duration_seconds
from puppetdb_exporter.exceptions import InvalidDurationError


class Settings(BaseSettings):
    """
    PuppetDB exporter configuration.

    All settings can be overridden via environment variables with
    PUPPETDB_EXPORTER_ prefix. For example:
        PUPPETDB_EXPORTER_PUPPETDB_URL=https://puppetdb.example.com:8081
        PUPPETDB_EXPORTER_UNREPORTED_NODE=4h
    """

    # PuppetDB connection
    puppetdb_url: str = "https://puppetdb:8081"
    cert_file: str = "certs/client.pem"
    key_file: str = "certs/client.key"
    ca_file: str = "certs/cacert.pem"
    ssl_skip_verify: bool = False
    http_timeout: float = 10.0

    # Scraping
    scrape_interval: str = "5s"
    unreported_node: str = "2h"  # parsed by ScrapeLoop, fatal if invalid

    # Exposition
    listen_host: str = "0.0.0.0"
    listen_port: int = 9635
    metric_path: str = "/metrics"

    log_level: str = "INFO"

    model_config = {"env_prefix": "PUPPETDB_EXPORTER_"}

    @field_validator("scrape_interval")
    @classmethod
    def _check_scrape_interval(cls, value: str) -> str:
        try:
            if duration_seconds(value) <= 0:
                raise ValueError(f"scrape interval must be positive: {value!r}")
        except InvalidDurationError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("metric_path")
    @classmethod
    def _check_metric_path(cls, value: str) -> str:
        if not value.startswith("/") or value == "/":
            raise ValueError(f"metric path must start with '/' and not be '/': {value!r}")
        return value.rstrip("/")

    @property
    def scrape_interval_seconds(self) -> float:
        return duration_seconds(self.scrape_interval)
