"""Shared fixtures for junit2es tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from junit2es.config import ElasticsearchConfig

TWO_CASE_REPORT = """<testsuites name="unit" tests="2" failures="1" errors="0" uuid="3f2a-91bc" timestamp="2026-01-20T10:00:00Z" time="1.5">
  <testsuite name="MathTest">
    <testcase name="testAdd" classname="com.example.MathTest" timestamp="2026-01-20T10:00:00Z" time="0.5"/>
    <testcase name="testDivide" classname="com.example.MathTest" timestamp="2026-01-20T10:00:01Z" time="1.0">
      <failure message="assert false" type="AssertionError">Expected true but was false</failure>
    </testcase>
  </testsuite>
</testsuites>
"""

MIXED_REPORT = """<testsuites name="integration" tests="5" failures="2" errors="0" uuid="77aa" timestamp="2026-01-21T08:30:00Z" time="12.25">
  <testsuite name="ApiTest">
    <testcase name="testGet" classname="com.example.ApiTest" timestamp="2026-01-21T08:30:00Z" time="1.25">
      <system-out>GET /items 200</system-out>
    </testcase>
    <testcase name="testRetry" classname="com.example.ApiTest" timestamp="2026-01-21T08:30:02Z" time="3.0">
      <flakyFailure message="timeout" type="java.net.SocketTimeoutException" timestamp="2026-01-21T08:30:02Z" time="2.5">Read timed out
        <system-out>first attempt out</system-out>
        <system-err>first attempt err</system-err>
      </flakyFailure>
    </testcase>
  </testsuite>
  <testsuite name="DbTest">
    <testcase name="testInsert" classname="com.example.DbTest" timestamp="2026-01-21T08:30:05Z" time="4.0">
      <failure message="duplicate key" type="SQLException">Unique constraint violated</failure>
      <system-err>WARN pool exhausted</system-err>
    </testcase>
    <testcase name="testDelete" classname="com.example.DbTest" timestamp="2026-01-21T08:30:09Z" time="2.0">
      <flakyFailure message="deadlock" type="SQLException" timestamp="2026-01-21T08:30:09Z" time="1.0">Deadlock found</flakyFailure>
      <failure message="row still present" type="AssertionError">Expected 0 rows</failure>
    </testcase>
    <testcase name="testSelect" classname="com.example.DbTest" timestamp="2026-01-21T08:30:11Z" time="2.0"/>
  </testsuite>
</testsuites>
"""


@pytest.fixture
def write_report(tmp_path: Path):
    """Write XML content to a report file and return its path."""

    def _write(content: str, name: str = "junit.xml") -> Path:
        path = tmp_path / name
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def es_config() -> ElasticsearchConfig:
    return ElasticsearchConfig(
        url="https://elastic.example.com",
        index="test-results",
        api_key="c2VjcmV0OmtleQ==",
        server_mode="serverless",
    )


def bulk_response(count: int, rejected: dict[int, dict] | None = None, took: int = 12) -> dict:
    """Build a bulk API response with one item per document."""
    rejected = rejected or {}
    items = []
    for position in range(count):
        if position in rejected:
            items.append(
                {"index": {"_index": "test-results", "status": 400, "error": rejected[position]}}
            )
        else:
            items.append({"index": {"_index": "test-results", "status": 201, "result": "created"}})
    return {"took": took, "errors": bool(rejected), "items": items}


@pytest.fixture
def mock_es_client() -> MagicMock:
    """Elasticsearch client that answers pings and accepts every document."""
    client = MagicMock()
    client.ping.return_value = True
    client.bulk.side_effect = lambda operations, refresh: bulk_response(len(operations) // 2)
    return client


@pytest.fixture
def make_bulk_response():
    return bulk_response


@pytest.fixture
def two_case_report() -> str:
    """Two test cases, the second with a hard failure."""
    return TWO_CASE_REPORT


@pytest.fixture
def mixed_report() -> str:
    """Two suites covering passed, flaky, failed and flaky-then-failed cases."""
    return MIXED_REPORT
