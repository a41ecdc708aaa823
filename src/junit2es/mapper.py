"""Map parsed test cases to flat Elasticsearch documents.

Each test case becomes one document carrying the run metadata and the
report-wide suite metadata. Classification follows a fixed order:

1. A ``flakyFailure`` child sets ``hasFlakyFailure`` and status ``flaky``.
2. A ``failure`` child sets ``hasFailure`` and status ``failed``, overriding
   the flaky status when both are present.
3. Otherwise the status is ``passed``.

A test case with both children therefore ends up ``failed`` with both flags
set and both detail blocks populated (``TestOutcome.FLAKY_THEN_FAILED``).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .flatten import flatten
from .junit_model import JUnitReport, TestCaseSource, TestSuiteMetadata

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"
STATUS_FLAKY = "flaky"


class TestOutcome(Enum):
    """Outcome of a test case, derived from its failure flags."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    FLAKY = "flaky"
    FLAKY_THEN_FAILED = "flaky_then_failed"

    @classmethod
    def from_flags(cls, has_failure: bool, has_flaky_failure: bool) -> "TestOutcome":
        if has_failure and has_flaky_failure:
            return cls.FLAKY_THEN_FAILED
        if has_failure:
            return cls.FAILED
        if has_flaky_failure:
            return cls.FLAKY
        return cls.PASSED


@dataclass(frozen=True)
class TestRun:
    """Run-level metadata attached to every document.

    Attributes:
        runner_name: Name of the CI runner or machine.
        run_id: Identifier of the CI run.
        extra: Free-form value supplied by the caller (string or mapping).
    """

    __test__ = False

    runner_name: str | None = None
    run_id: str | None = None
    extra: Any = None


@dataclass(frozen=True)
class FailureDetail:
    message: str = ""
    type: str = ""
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "type": self.type, "details": self.details}


@dataclass(frozen=True)
class FlakyFailureDetail:
    timestamp: str | None = None
    duration: float | None = None
    message: str = ""
    type: str = ""
    details: str = ""
    system_out: str | None = None
    system_err: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "@timestamp": self.timestamp,
            "duration": self.duration,
            "message": self.message,
            "type": self.type,
            "details": self.details,
        }
        if self.system_out is not None:
            data["systemOut"] = self.system_out
        if self.system_err is not None:
            data["systemErr"] = self.system_err
        return data


@dataclass(frozen=True)
class TestCaseRecord:
    """A classified test case, ready to be turned into a document."""

    __test__ = False

    test_suite: str
    test_name: str
    class_name: str
    timestamp: str
    duration: float
    status: str
    has_failure: bool
    has_flaky_failure: bool
    failure: FailureDetail | None = None
    flaky_failure: FlakyFailureDetail | None = None
    system_out: str | None = None
    system_err: str | None = None

    @property
    def outcome(self) -> TestOutcome:
        return TestOutcome.from_flags(self.has_failure, self.has_flaky_failure)


def build_record(case: TestCaseSource) -> TestCaseRecord:
    """Classify a test case and collect its failure details.

    Args:
        case: Test case as extracted from the report.

    Returns:
        TestCaseRecord with status and failure flags set.
    """
    has_failure = False
    has_flaky_failure = False
    status = STATUS_PASSED
    failure = None
    flaky_failure = None

    if case.flaky_failure is not None:
        source = case.flaky_failure
        has_flaky_failure = True
        status = STATUS_FLAKY
        flaky_failure = FlakyFailureDetail(
            timestamp=source.timestamp,
            duration=source.duration,
            message=source.message,
            type=source.type,
            details=source.details,
            system_out=source.system_out,
            system_err=source.system_err,
        )

    # Checked after flakyFailure so that a hard failure overrides the flaky status
    if case.failure is not None:
        has_failure = True
        status = STATUS_FAILED
        failure = FailureDetail(
            message=case.failure.message,
            type=case.failure.type,
            details=case.failure.details,
        )

    return TestCaseRecord(
        test_suite=case.suite_name,
        test_name=case.name,
        class_name=case.class_name,
        timestamp=case.timestamp,
        duration=case.duration,
        status=status,
        has_failure=has_failure,
        has_flaky_failure=has_flaky_failure,
        failure=failure,
        flaky_failure=flaky_failure,
        system_out=case.system_out,
        system_err=case.system_err,
    )


def record_to_document(
    record: TestCaseRecord, test_run: TestRun, metadata: TestSuiteMetadata
) -> dict[str, Any]:
    """Assemble the nested document for a record and flatten it."""
    doc: dict[str, Any] = {
        "testSuite": record.test_suite,
        "testName": record.test_name,
        "className": record.class_name,
        "@timestamp": record.timestamp,
        "duration": record.duration,
        "runnerName": test_run.runner_name,
        "runId": test_run.run_id,
        "extra": test_run.extra,
        "hasFailure": record.has_failure,
        "hasFlakyFailure": record.has_flaky_failure,
        "testsuiteMetadata": metadata.to_dict(),
        "status": record.status,
    }

    if record.flaky_failure is not None:
        doc["flakyFailure"] = record.flaky_failure.to_dict()
    if record.failure is not None:
        doc["failure"] = record.failure.to_dict()
    if record.system_out is not None:
        doc["systemOut"] = record.system_out
    if record.system_err is not None:
        doc["systemErr"] = record.system_err

    return flatten(doc)


def build_document(
    case: TestCaseSource, test_run: TestRun, metadata: TestSuiteMetadata
) -> dict[str, Any]:
    """Produce the flat document for a single test case."""
    return record_to_document(build_record(case), test_run, metadata)


def map_report(report: JUnitReport, test_run: TestRun) -> list[dict[str, Any]]:
    """Produce one flat document per test case, in report order.

    Args:
        report: Parsed JUnit report.
        test_run: Run metadata attached to every document.

    Returns:
        List of flat documents; its length equals the number of test cases.
    """
    return [build_document(case, test_run, report.metadata) for case in report.test_cases]
