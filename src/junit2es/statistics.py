"""Summary statistics for a mapped test report.

Counts test cases per status and per suite, including the flaky-then-failed
overlap, and compares them with the totals the report declares about itself.
"""

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .junit_model import TestSuiteMetadata
from .mapper import TestCaseRecord, TestOutcome


@dataclass
class SuiteStatistics:
    """Per-suite counts."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    flaky: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "flaky": self.flaky,
            "duration": round(self.duration, 3),
        }


@dataclass
class ReportStatistics:
    """Counts over every test case of a report."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    flaky: int = 0
    flaky_then_failed: int = 0
    total_duration: float = 0.0
    declared_tests: int | None = None
    declared_failures: int | None = None
    declared_errors: int | None = None
    per_suite: dict[str, SuiteStatistics] = field(default_factory=dict)

    @property
    def pass_rate(self) -> float:
        return self.passed / self.total if self.total > 0 else 0.0

    @property
    def matches_declared_total(self) -> bool:
        """Whether the number of test cases equals the report's ``tests`` attribute."""
        return self.declared_tests is None or self.declared_tests == self.total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "flaky": self.flaky,
            "flaky_then_failed": self.flaky_then_failed,
            "pass_rate": round(self.pass_rate, 4),
            "total_duration": round(self.total_duration, 3),
            "declared": {
                "tests": self.declared_tests,
                "failures": self.declared_failures,
                "errors": self.declared_errors,
            },
            "per_suite": {name: stats.to_dict() for name, stats in self.per_suite.items()},
        }


def compute_statistics(
    records: Sequence[TestCaseRecord], metadata: TestSuiteMetadata | None = None
) -> ReportStatistics:
    """Aggregate classified test cases.

    ``failed`` counts every record with status ``failed``, which includes
    the flaky-then-failed ones; ``flaky_then_failed`` reports that subset.

    Args:
        records: Classified test cases.
        metadata: Report metadata whose declared totals are carried along.

    Returns:
        ReportStatistics for the whole report.
    """
    stats = ReportStatistics()
    if metadata is not None:
        stats.declared_tests = metadata.total_tests
        stats.declared_failures = metadata.failures
        stats.declared_errors = metadata.errors

    outcomes = Counter(record.outcome for record in records)
    stats.total = len(records)
    stats.passed = outcomes[TestOutcome.PASSED]
    stats.flaky = outcomes[TestOutcome.FLAKY]
    stats.flaky_then_failed = outcomes[TestOutcome.FLAKY_THEN_FAILED]
    stats.failed = outcomes[TestOutcome.FAILED] + stats.flaky_then_failed

    for record in records:
        suite = stats.per_suite.setdefault(record.test_suite, SuiteStatistics())
        suite.total += 1
        suite.duration += record.duration
        stats.total_duration += record.duration
        if record.outcome is TestOutcome.PASSED:
            suite.passed += 1
        elif record.outcome is TestOutcome.FLAKY:
            suite.flaky += 1
        else:
            suite.failed += 1

    return stats
