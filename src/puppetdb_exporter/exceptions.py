"""
Exception classes for the PuppetDB exporter.

Two families matter to callers:
- ConfigError subclasses are fatal and abort startup
- PuppetDBError is recoverable: the scrape loop contains it per cycle
  (node list) or per node (report metrics)

RegistryError subclasses signal programming errors against the fixed
gauge schema and are not expected at runtime.
"""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError):
    """Raised when startup configuration is unusable."""


class InvalidDurationError(ConfigError):
    """
    Raised when a duration string cannot be parsed.

    Attributes:
        value: The offending duration string
    """

    def __init__(self, value: str, reason: str = "invalid duration") -> None:
        self.value = value
        super().__init__(f"{reason}: {value!r}")


class ClientConfigError(ConfigError):
    """Raised when the PuppetDB HTTP client cannot be constructed."""


class PuppetDBError(ExporterError):
    """
    Raised when a PuppetDB query fails.

    Wraps transport errors, non-2xx responses and malformed payloads so
    callers only need to catch one type.

    Attributes:
        endpoint: The API path that was queried
    """

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"PuppetDB query {endpoint} failed: {message}")


class RegistryError(ExporterError):
    """Base class for metric registry misuse."""


class UnknownCollectionError(RegistryError):
    """Raised when setting a gauge collection that does not exist."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"Unknown gauge collection: {collection}")


class LabelMismatchError(RegistryError):
    """
    Raised when label names do not match a collection's schema.

    Attributes:
        collection: The collection key
        expected: Label names the collection was created with
        got: Label names that were supplied
    """

    def __init__(
        self, collection: str, expected: tuple[str, ...], got: tuple[str, ...]
    ) -> None:
        self.collection = collection
        self.expected = expected
        self.got = got
        super().__init__(
            f"Labels for {collection} must be {sorted(expected)}, got {sorted(got)}"
        )
