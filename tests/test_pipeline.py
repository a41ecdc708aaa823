"""End-to-end tests: report file to bulk upload."""

import io
import json
from unittest.mock import MagicMock

import pytest

from junit2es.config import ElasticsearchConfig, RunMetadataConfig, UploaderConfig
from junit2es.exceptions import MalformedReportError
from junit2es.mapper import TestRun
from junit2es.pipeline import convert_report, upload_report, write_ndjson


@pytest.fixture
def uploader_config(es_config: ElasticsearchConfig) -> UploaderConfig:
    return UploaderConfig(
        elasticsearch=es_config,
        run=RunMetadataConfig(runner_name="gha", run_id="42", extra="nightly"),
    )


class TestConvertReport:
    """Tests for convert_report()."""

    def test_document_count_matches_test_cases(self, write_report, mixed_report) -> None:
        conversion = convert_report(write_report(mixed_report), TestRun())

        assert len(conversion.documents) == 5
        assert len(conversion.records) == 5
        assert len(conversion.report.test_cases) == 5

    def test_statistics(self, write_report, mixed_report) -> None:
        stats = convert_report(write_report(mixed_report), TestRun()).statistics

        assert stats.total == 5
        assert stats.flaky_then_failed == 1

    def test_malformed_report(self, write_report) -> None:
        with pytest.raises(MalformedReportError):
            convert_report(write_report("<testsuites>"), TestRun())


class TestUploadReport:
    """Tests for upload_report() against a mocked backend."""

    def test_all_documents_accepted(
        self, write_report, two_case_report, uploader_config, mock_es_client
    ) -> None:
        result = upload_report(write_report(two_case_report), uploader_config, mock_es_client)

        assert len(result.conversion.documents) == 2
        assert result.upload.total == 2
        assert result.upload.succeeded == 2
        assert result.upload.error_count == 0

        failed = result.conversion.documents[1]
        assert failed["status"] == "failed"
        assert failed["failure.message"] == "assert false"
        assert failed["runnerName"] == "gha"
        assert failed["runId"] == "42"
        assert failed["extra"] == "nightly"

    def test_rejected_document_is_reported(
        self, write_report, two_case_report, uploader_config, make_bulk_response
    ) -> None:
        client = MagicMock()
        client.ping.return_value = True
        client.bulk.return_value = make_bulk_response(
            2,
            rejected={
                1: {"type": "mapper_parsing_exception", "reason": "object mapping conflict"}
            },
        )

        result = upload_report(write_report(two_case_report), uploader_config, client)

        assert result.upload.error_count == 1
        (error,) = result.upload.errors
        assert error.test_name == "testDivide"
        assert error.error_type == "mapper_parsing_exception"
        assert result.upload.succeeded == 1

    def test_malformed_report_never_reaches_backend(
        self, write_report, uploader_config, mock_es_client
    ) -> None:
        with pytest.raises(MalformedReportError):
            upload_report(write_report("<testsuite/>"), uploader_config, mock_es_client)

        mock_es_client.ping.assert_not_called()
        mock_es_client.bulk.assert_not_called()


class TestWriteNdjson:
    """Tests for NDJSON output."""

    def test_one_line_per_document(self) -> None:
        docs = [{"testName": "a", "status": "passed"}, {"testName": "b", "extra": None}]
        stream = io.StringIO()

        count = write_ndjson(docs, stream)

        lines = stream.getvalue().splitlines()
        assert count == 2
        assert [json.loads(line) for line in lines] == docs

    def test_non_ascii_is_kept(self) -> None:
        stream = io.StringIO()
        write_ndjson([{"testName": "prüfung"}], stream)
        assert "prüfung" in stream.getvalue()
