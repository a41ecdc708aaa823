"""Error types raised by junit2es."""


class Junit2EsError(Exception):
    """Base class for all junit2es errors."""


class MalformedReportError(Junit2EsError):
    """The test report is structurally invalid or misses required data."""


class BackendConnectionError(Junit2EsError, ConnectionError):
    """Elasticsearch is unreachable or rejected the credentials."""


class BulkRequestError(Junit2EsError):
    """The bulk request as a whole failed.

    Attributes:
        status: HTTP status reported by the server, if any.
        body: Error body returned by the server, if any.
    """

    def __init__(self, message: str, status: int | None = None, body: object = None):
        super().__init__(message)
        self.status = status
        self.body = body


class ConfigError(Junit2EsError):
    """Required configuration is missing or invalid."""
