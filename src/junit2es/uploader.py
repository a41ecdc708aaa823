"""Bulk upload of flat documents to Elasticsearch."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from elasticsearch import (
    ApiError,
    AuthenticationException,
    AuthorizationException,
    Elasticsearch,
    TransportError,
)
from elasticsearch import ConnectionError as ESConnectionError

from .config import ElasticsearchConfig
from .exceptions import BackendConnectionError, BulkRequestError

logger = logging.getLogger(__name__)

# Number of per-item errors shown in summaries
ERROR_PREVIEW_LIMIT = 5


@dataclass
class PerDocumentIndexError:
    """A document the backend rejected inside an otherwise successful bulk request."""

    position: int
    status: int | None
    error_type: str
    reason: str
    document: dict[str, Any] | None = None
    error: Any = None

    @property
    def test_name(self) -> str | None:
        if self.document is None:
            return None
        return self.document.get("testName")


@dataclass
class UploadResult:
    """Outcome of one bulk upload."""

    total: int
    took_ms: int | None = None
    errors: list[PerDocumentIndexError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def succeeded(self) -> int:
        return self.total - len(self.errors)

    def first_errors(self, limit: int = ERROR_PREVIEW_LIMIT) -> list[PerDocumentIndexError]:
        return self.errors[:limit]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.error_count,
            "took_ms": self.took_ms,
            "errors": [
                {
                    "position": err.position,
                    "status": err.status,
                    "type": err.error_type,
                    "reason": err.reason,
                    "testName": err.test_name,
                }
                for err in self.errors
            ],
        }


def create_client(config: ElasticsearchConfig) -> Elasticsearch:
    """Create an Elasticsearch client authenticated with the configured API key."""
    return Elasticsearch(config.url, api_key=config.api_key)


def build_bulk_operations(
    documents: Sequence[Mapping[str, Any]], index: str
) -> list[dict[str, Any]]:
    """Build the bulk body: an index action followed by its document, per document.

    Args:
        documents: Flat documents in upload order.
        index: Target index name.

    Returns:
        List alternating action descriptors and documents.
    """
    operations: list[dict[str, Any]] = []
    for doc in documents:
        operations.append({"index": {"_index": index}})
        operations.append(dict(doc))
    return operations


def collect_item_errors(
    items: Sequence[Mapping[str, Any]], documents: Sequence[Mapping[str, Any]]
) -> list[PerDocumentIndexError]:
    """Extract rejected items from a bulk response.

    Elasticsearch returns one item per action/document pair, so item ``i``
    belongs to ``documents[i]``.

    Args:
        items: The ``items`` array of the bulk response.
        documents: The documents that were sent, in order.

    Returns:
        One PerDocumentIndexError per failed item, in response order.
    """
    if len(items) != len(documents):
        logger.warning(
            "Bulk response has %d items for %d documents; error attribution may be off",
            len(items),
            len(documents),
        )

    errors: list[PerDocumentIndexError] = []
    for position, item in enumerate(items):
        for outcome in item.values():
            error = outcome.get("error")
            if not error:
                continue
            if isinstance(error, Mapping):
                error_type = error.get("type", "")
                reason = error.get("reason", "")
            else:
                error_type, reason = "", str(error)
            errors.append(
                PerDocumentIndexError(
                    position=position,
                    status=outcome.get("status"),
                    error_type=error_type,
                    reason=reason,
                    document=dict(documents[position]) if position < len(documents) else None,
                    error=error,
                )
            )
    return errors


class BulkUploader:
    """Uploads documents to one index in a single bulk request."""

    def __init__(self, config: ElasticsearchConfig, client: Elasticsearch | None = None):
        """Initialize the uploader.

        Args:
            config: Elasticsearch connection settings.
            client: Pre-built client; one is created from ``config`` if None.
        """
        self.config = config
        self.client = client if client is not None else create_client(config)

    def verify_connection(self) -> None:
        """Ping the backend.

        Raises:
            BackendConnectionError: If the backend does not answer or rejects
                the credentials.
        """
        logger.info(
            "Connecting to Elasticsearch at %s (%s)...", self.config.url, self.config.server_mode
        )
        try:
            reachable = self.client.ping()
        except (AuthenticationException, AuthorizationException) as e:
            raise BackendConnectionError(
                f"Elasticsearch at {self.config.url} rejected the API key: {e}"
            ) from e
        except TransportError as e:
            raise BackendConnectionError(
                f"Cannot reach Elasticsearch at {self.config.url}: {e}"
            ) from e

        if not reachable:
            raise BackendConnectionError(
                f"Elasticsearch at {self.config.url} did not answer the ping; "
                "check the URL and API key"
            )
        logger.info("Connection successful")

    def upload(self, documents: Sequence[Mapping[str, Any]]) -> UploadResult:
        """Verify the connection, then index all documents in one bulk request.

        Per-item rejections are returned in the result; they do not raise and
        do not undo the documents that were accepted.

        Args:
            documents: Flat documents in upload order.

        Returns:
            UploadResult with the document count, server time and item errors.

        Raises:
            BackendConnectionError: If the backend is unreachable or the
                credentials are rejected.
            BulkRequestError: If the bulk request as a whole fails.
        """
        self.verify_connection()

        if not documents:
            logger.warning("No documents to upload")
            return UploadResult(total=0)

        operations = build_bulk_operations(documents, self.config.index)
        logger.info("Uploading %d documents to index \"%s\"...", len(documents), self.config.index)

        try:
            response = self.client.bulk(operations=operations, refresh=True)
        except (AuthenticationException, AuthorizationException) as e:
            raise BackendConnectionError(f"Bulk request was not authorized: {e}") from e
        except ApiError as e:
            raise BulkRequestError(
                f"Bulk request failed: {e}", status=e.meta.status, body=e.body
            ) from e
        except ESConnectionError as e:
            raise BackendConnectionError(f"Lost connection during bulk request: {e}") from e
        except TransportError as e:
            raise BulkRequestError(f"Bulk request failed: {e}") from e

        result = UploadResult(total=len(documents), took_ms=response["took"])
        if response["errors"]:
            result.errors = collect_item_errors(response["items"], documents)
            logger.debug("Bulk request finished with %d item errors", result.error_count)
        return result


def upload_documents(
    documents: Sequence[Mapping[str, Any]],
    config: ElasticsearchConfig,
    client: Elasticsearch | None = None,
) -> UploadResult:
    """Upload documents with a one-off BulkUploader.

    Args:
        documents: Flat documents in upload order.
        config: Elasticsearch connection settings.
        client: Optional pre-built client.

    Returns:
        UploadResult of the bulk request.
    """
    return BulkUploader(config, client=client).upload(documents)
