"""Typed model of a JUnit XML test report.

The XML tree is decoded once into ``XmlNode`` values and then into typed
records, so nothing downstream touches ``xml.etree.ElementTree`` directly.

JUnit XML Structure:
    - testsuites: Root element with report-wide totals
    - testsuite: Named container for test cases
    - testcase: Individual test execution
    - flakyFailure: Failure that passed on rerun (may hold system-out/err)
    - failure: Hard failure
    - system-out / system-err: Captured output
"""

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import MalformedReportError

ROOT_TAG = "testsuites"
SUITE_TAG = "testsuite"
CASE_TAG = "testcase"


@dataclass(frozen=True)
class XmlNode:
    """An XML element reduced to attributes, text content and child elements."""

    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: str | None = None
    children: tuple["XmlNode", ...] = ()

    @classmethod
    def from_element(cls, element: ET.Element) -> "XmlNode":
        """Decode an ElementTree element and all of its descendants.

        Text is the element's own character data (text before the first
        child plus the tails of its children). For elements that have
        children the combined text is stripped, since it is mostly
        indentation.
        """
        children = tuple(cls.from_element(child) for child in element)
        pieces = [element.text or ""]
        pieces.extend(child.tail or "" for child in element)
        text = "".join(pieces)
        if children:
            text = text.strip()
        has_text = element.text is not None or bool(text)
        return cls(
            tag=_local_name(element.tag),
            attributes=dict(element.attrib),
            text=text if has_text else None,
            children=children,
        )

    def first(self, tag: str) -> "XmlNode | None":
        """Return the first child with the given tag, or None."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def find_all(self, tag: str) -> list["XmlNode"]:
        """Return all children with the given tag in document order."""
        return [child for child in self.children if child.tag == tag]

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)


@dataclass(frozen=True)
class TestSuiteMetadata:
    """Report-wide totals taken from the ``testsuites`` root element."""

    __test__ = False

    name: str
    total_tests: int
    failures: int
    errors: int
    uuid: str
    timestamp: str
    total_duration: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to the nested document representation."""
        return {
            "name": self.name,
            "totalTests": self.total_tests,
            "failures": self.failures,
            "errors": self.errors,
            "uuid": self.uuid,
            "@timestamp": self.timestamp,
            "totalDuration": self.total_duration,
        }


@dataclass(frozen=True)
class FailureSource:
    message: str = ""
    type: str = ""
    details: str = ""


@dataclass(frozen=True)
class FlakyFailureSource:
    timestamp: str | None = None
    duration: float | None = None
    message: str = ""
    type: str = ""
    details: str = ""
    system_out: str | None = None
    system_err: str | None = None


@dataclass(frozen=True)
class TestCaseSource:
    """One ``testcase`` element together with the name of its suite."""

    __test__ = False

    suite_name: str
    name: str
    class_name: str
    timestamp: str
    duration: float
    failure: FailureSource | None = None
    flaky_failure: FlakyFailureSource | None = None
    system_out: str | None = None
    system_err: str | None = None


@dataclass(frozen=True)
class JUnitReport:
    """A parsed report: suite metadata plus test cases in document order."""

    metadata: TestSuiteMetadata
    test_cases: list[TestCaseSource]
    suite_names: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.test_cases)


def parse_report_string(content: str | bytes) -> JUnitReport:
    """Parse JUnit XML content into a report.

    Raises:
        MalformedReportError: If the XML is not well formed or is missing
            required elements or attributes.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise MalformedReportError(f"Invalid XML: {e}") from e
    return extract_report(XmlNode.from_element(root))


def parse_report_file(path: str | Path) -> JUnitReport:
    """Read and parse a JUnit XML file.

    Raises:
        MalformedReportError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise MalformedReportError(f"Cannot read report {path}: {e}") from e
    return parse_report_string(content)


def extract_report(root: XmlNode) -> JUnitReport:
    """Build the typed report model from a decoded XML tree.

    Args:
        root: The decoded root element; must be ``testsuites``.

    Returns:
        JUnitReport with the metadata and every test case of every suite.

    Raises:
        MalformedReportError: If the root is not ``testsuites``, there are no
            ``testsuite`` children, or a required attribute is missing or
            not numeric.
    """
    if root.tag != ROOT_TAG:
        raise MalformedReportError(f"Expected <{ROOT_TAG}> root element, found <{root.tag}>")

    metadata = TestSuiteMetadata(
        name=_require(root, "name"),
        total_tests=_parse_count(root, "tests"),
        failures=_parse_count(root, "failures"),
        errors=_parse_count(root, "errors"),
        uuid=_require(root, "uuid"),
        timestamp=_require(root, "timestamp"),
        total_duration=_parse_duration(root, "time"),
    )

    suites = root.find_all(SUITE_TAG)
    if not suites:
        raise MalformedReportError(f"<{ROOT_TAG}> contains no <{SUITE_TAG}> elements")

    test_cases: list[TestCaseSource] = []
    suite_names: list[str] = []
    for suite in suites:
        suite_name = _require(suite, "name")
        suite_names.append(suite_name)
        for case in suite.find_all(CASE_TAG):
            test_cases.append(_extract_test_case(case, suite_name))

    return JUnitReport(metadata=metadata, test_cases=test_cases, suite_names=suite_names)


def _extract_test_case(case: XmlNode, suite_name: str) -> TestCaseSource:
    failure = case.first("failure")
    flaky = case.first("flakyFailure")

    return TestCaseSource(
        suite_name=suite_name,
        name=_require(case, "name"),
        class_name=_require(case, "classname"),
        timestamp=_require(case, "timestamp"),
        duration=_parse_duration(case, "time"),
        failure=_extract_failure(failure) if failure is not None else None,
        flaky_failure=_extract_flaky_failure(flaky) if flaky is not None else None,
        system_out=_child_text(case, "system-out"),
        system_err=_child_text(case, "system-err"),
    )


def _extract_failure(node: XmlNode) -> FailureSource:
    return FailureSource(
        message=node.get("message") or "",
        type=node.get("type") or "",
        details=node.text or "",
    )


def _extract_flaky_failure(node: XmlNode) -> FlakyFailureSource:
    duration = None
    if node.get("time") is not None:
        duration = _parse_duration(node, "time")

    return FlakyFailureSource(
        timestamp=node.get("timestamp"),
        duration=duration,
        message=node.get("message") or "",
        type=node.get("type") or "",
        details=node.text or "",
        system_out=_child_text(node, "system-out"),
        system_err=_child_text(node, "system-err"),
    )


def _child_text(node: XmlNode, tag: str) -> str | None:
    child = node.first(tag)
    if child is None:
        return None
    return child.text or ""


def _require(node: XmlNode, name: str) -> str:
    value = node.get(name)
    if value is None:
        raise MalformedReportError(f"<{node.tag}> is missing required attribute '{name}'")
    return value


def _parse_count(node: XmlNode, name: str) -> int:
    raw = _require(node, name)
    try:
        value = int(raw.strip())
    except ValueError:
        raise MalformedReportError(
            f"<{node.tag}> attribute '{name}' is not an integer: {raw!r}"
        ) from None
    if value < 0:
        raise MalformedReportError(f"<{node.tag}> attribute '{name}' is negative: {value}")
    return value


def _parse_duration(node: XmlNode, name: str) -> float:
    raw = _require(node, name)
    try:
        value = float(raw.strip())
    except ValueError:
        raise MalformedReportError(
            f"<{node.tag}> attribute '{name}' is not a number: {raw!r}"
        ) from None
    if value < 0 or not math.isfinite(value):
        raise MalformedReportError(f"<{node.tag}> attribute '{name}' is invalid: {raw!r}")
    return value


def _local_name(tag: str) -> str:
    # Strip "{namespace}" prefixes added by ElementTree
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag
