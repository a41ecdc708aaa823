"""Tests for the Elasticsearch bulk uploader."""

from unittest.mock import MagicMock, patch

import pytest
from elasticsearch import ApiError, AuthenticationException
from elasticsearch import ConnectionError as ESConnectionError

from junit2es.exceptions import BackendConnectionError, BulkRequestError
from junit2es.uploader import (
    BulkUploader,
    PerDocumentIndexError,
    UploadResult,
    build_bulk_operations,
    collect_item_errors,
    create_client,
    upload_documents,
)

MAPPING_ERROR = {
    "type": "mapper_parsing_exception",
    "reason": "failed to parse field [duration] of type [float]",
}


def make_documents(count: int) -> list[dict]:
    return [{"testName": f"test{i}", "status": "passed"} for i in range(count)]


class TestBuildBulkOperations:
    """Tests for the bulk request body."""

    def test_alternates_action_and_document(self) -> None:
        docs = make_documents(2)
        operations = build_bulk_operations(docs, "test-results")

        assert operations == [
            {"index": {"_index": "test-results"}},
            docs[0],
            {"index": {"_index": "test-results"}},
            docs[1],
        ]

    def test_empty(self) -> None:
        assert build_bulk_operations([], "idx") == []


class TestCollectItemErrors:
    """Tests for per-item error extraction."""

    def test_maps_item_position_to_document(self, make_bulk_response) -> None:
        docs = make_documents(4)
        response = make_bulk_response(4, rejected={1: MAPPING_ERROR, 3: MAPPING_ERROR})

        errors = collect_item_errors(response["items"], docs)

        assert [e.position for e in errors] == [1, 3]
        assert [e.test_name for e in errors] == ["test1", "test3"]
        assert errors[0].status == 400
        assert errors[0].error_type == "mapper_parsing_exception"
        assert errors[0].reason.startswith("failed to parse field")
        assert errors[0].document == docs[1]

    def test_no_errors(self, make_bulk_response) -> None:
        response = make_bulk_response(3)
        assert collect_item_errors(response["items"], make_documents(3)) == []

    def test_string_error(self) -> None:
        items = [{"index": {"status": 500, "error": "shard failure"}}]
        (error,) = collect_item_errors(items, make_documents(1))

        assert error.error_type == ""
        assert error.reason == "shard failure"

    def test_item_without_document(self) -> None:
        items = [{"index": {"status": 201}}, {"index": {"status": 400, "error": MAPPING_ERROR}}]
        (error,) = collect_item_errors(items, make_documents(1))

        assert error.document is None
        assert error.test_name is None


class TestUploadResult:
    """Tests for UploadResult accounting."""

    def test_counts(self) -> None:
        errors = [
            PerDocumentIndexError(position=i, status=400, error_type="t", reason="r")
            for i in range(7)
        ]
        result = UploadResult(total=10, took_ms=5, errors=errors)

        assert result.has_errors
        assert result.error_count == 7
        assert result.succeeded == 3
        assert len(result.first_errors()) == 5

    def test_to_dict(self) -> None:
        error = PerDocumentIndexError(
            position=0, status=400, error_type="t", reason="r", document={"testName": "a"}
        )
        data = UploadResult(total=1, took_ms=3, errors=[error]).to_dict()

        assert data["succeeded"] == 0
        assert data["failed"] == 1
        assert data["errors"][0]["testName"] == "a"


class TestBulkUploader:
    """Tests for BulkUploader.upload()."""

    def test_upload_success(self, es_config, mock_es_client) -> None:
        docs = make_documents(3)
        result = BulkUploader(es_config, client=mock_es_client).upload(docs)

        assert result.total == 3
        assert result.succeeded == 3
        assert result.took_ms == 12
        assert not result.has_errors
        mock_es_client.ping.assert_called_once()
        mock_es_client.bulk.assert_called_once_with(
            operations=build_bulk_operations(docs, "test-results"), refresh=True
        )

    def test_partial_failure_is_not_raised(self, es_config, make_bulk_response) -> None:
        client = MagicMock()
        client.ping.return_value = True
        client.bulk.return_value = make_bulk_response(3, rejected={1: MAPPING_ERROR})

        result = BulkUploader(es_config, client=client).upload(make_documents(3))

        assert result.error_count == 1
        assert result.succeeded == 2
        assert result.errors[0].test_name == "test1"

    def test_ping_false_raises(self, es_config) -> None:
        client = MagicMock()
        client.ping.return_value = False

        with pytest.raises(BackendConnectionError, match="did not answer"):
            BulkUploader(es_config, client=client).upload(make_documents(1))
        client.bulk.assert_not_called()

    def test_ping_connection_error_raises(self, es_config) -> None:
        client = MagicMock()
        client.ping.side_effect = ESConnectionError("Connection refused")

        with pytest.raises(BackendConnectionError, match="Cannot reach"):
            BulkUploader(es_config, client=client).upload(make_documents(1))

    def test_connection_error_is_builtin_connection_error(self, es_config) -> None:
        client = MagicMock()
        client.ping.return_value = False

        with pytest.raises(ConnectionError):
            BulkUploader(es_config, client=client).verify_connection()

    def test_bulk_authentication_failure(self, es_config) -> None:
        client = MagicMock()
        client.ping.return_value = True
        client.bulk.side_effect = AuthenticationException(
            "unauthorized", meta=MagicMock(status=401), body={}
        )

        with pytest.raises(BackendConnectionError, match="not authorized"):
            BulkUploader(es_config, client=client).upload(make_documents(1))

    def test_bulk_api_error(self, es_config) -> None:
        client = MagicMock()
        client.ping.return_value = True
        client.bulk.side_effect = ApiError(
            "request entity too large", meta=MagicMock(status=413), body={"message": "too big"}
        )

        with pytest.raises(BulkRequestError) as exc_info:
            BulkUploader(es_config, client=client).upload(make_documents(1))

        assert exc_info.value.status == 413
        assert exc_info.value.body == {"message": "too big"}

    def test_bulk_connection_lost(self, es_config) -> None:
        client = MagicMock()
        client.ping.return_value = True
        client.bulk.side_effect = ESConnectionError("Connection reset")

        with pytest.raises(BackendConnectionError, match="Lost connection"):
            BulkUploader(es_config, client=client).upload(make_documents(1))

    def test_empty_upload_skips_bulk(self, es_config, mock_es_client) -> None:
        result = BulkUploader(es_config, client=mock_es_client).upload([])

        assert result.total == 0
        mock_es_client.ping.assert_called_once()
        mock_es_client.bulk.assert_not_called()

    def test_preserves_document_order(self, es_config, mock_es_client) -> None:
        docs = make_documents(5)
        upload_documents(docs, es_config, client=mock_es_client)

        operations = mock_es_client.bulk.call_args.kwargs["operations"]
        assert [op["testName"] for op in operations[1::2]] == [d["testName"] for d in docs]


class TestCreateClient:
    """Tests for client construction."""

    @patch("junit2es.uploader.Elasticsearch")
    def test_uses_url_and_api_key(self, mock_es_class, es_config) -> None:
        create_client(es_config)
        mock_es_class.assert_called_once_with(
            "https://elastic.example.com", api_key="c2VjcmV0OmtleQ=="
        )

    @patch("junit2es.uploader.create_client")
    def test_uploader_creates_client_when_missing(self, mock_create, es_config) -> None:
        uploader = BulkUploader(es_config)

        mock_create.assert_called_once_with(es_config)
        assert uploader.client is mock_create.return_value
