"""End-to-end conversion and upload of a JUnit report."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from elasticsearch import Elasticsearch

from .config import UploaderConfig
from .junit_model import JUnitReport, parse_report_file
from .mapper import TestCaseRecord, TestRun, build_record, record_to_document
from .statistics import ReportStatistics, compute_statistics
from .uploader import UploadResult, upload_documents

logger = logging.getLogger(__name__)


@dataclass
class Conversion:
    """A parsed report with its classified records and flat documents."""

    report: JUnitReport
    records: list[TestCaseRecord]
    documents: list[dict[str, Any]]

    @property
    def statistics(self) -> ReportStatistics:
        return compute_statistics(self.records, self.report.metadata)


@dataclass
class PipelineResult:
    conversion: Conversion
    upload: UploadResult


def convert_report(report_path: str | Path, test_run: TestRun) -> Conversion:
    """Parse a report file and map every test case to a flat document.

    Raises:
        MalformedReportError: If the report cannot be read or is invalid.
    """
    report = parse_report_file(report_path)
    records = [build_record(case) for case in report.test_cases]
    documents = [record_to_document(record, test_run, report.metadata) for record in records]

    logger.debug(
        "Converted %d test cases from %d suites in %s",
        len(documents),
        len(report.suite_names),
        report_path,
    )
    if report.metadata.total_tests != len(documents):
        logger.debug(
            "Report declares tests=%d but contains %d test cases",
            report.metadata.total_tests,
            len(documents),
        )
    return Conversion(report=report, records=records, documents=documents)


def upload_report(
    report_path: str | Path,
    config: UploaderConfig,
    client: Elasticsearch | None = None,
) -> PipelineResult:
    """Convert a report and upload its documents in one bulk request.

    The whole report is converted before any network call, so a malformed
    report never reaches the backend.

    Raises:
        MalformedReportError: If the report is invalid.
        BackendConnectionError: If the backend is unreachable.
        BulkRequestError: If the bulk request as a whole fails.
    """
    conversion = convert_report(report_path, config.run.to_test_run())
    result = upload_documents(conversion.documents, config.elasticsearch, client=client)
    return PipelineResult(conversion=conversion, upload=result)


def write_ndjson(documents: list[dict[str, Any]], stream: IO[str]) -> int:
    """Write documents as newline-delimited JSON.

    Returns:
        Number of documents written.
    """
    for doc in documents:
        stream.write(json.dumps(doc, ensure_ascii=False))
        stream.write("\n")
    return len(documents)
