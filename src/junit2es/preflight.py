"""Preflight checks to validate setup and connectivity before uploading."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from elasticsearch import Elasticsearch
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import UploaderConfig, build_config
from .config_validator import validate_config
from .exceptions import BackendConnectionError, ConfigError, MalformedReportError
from .junit_model import parse_report_file
from .uploader import BulkUploader


@dataclass
class PreflightResult:
    """Result of a preflight check."""

    name: str
    passed: bool
    message: str
    details: str | None = None
    error: str | None = None


class PreflightRunner:
    """Runs preflight checks for an upload."""

    def __init__(
        self,
        config_path: Path | None = None,
        elasticsearch: dict[str, Any] | None = None,
        report_path: Path | None = None,
        client: Elasticsearch | None = None,
    ):
        """Initialize preflight runner.

        Args:
            config_path: Optional configuration file.
            elasticsearch: Command-line overrides for the elasticsearch section.
            report_path: Optional report to test-parse.
            client: Pre-built Elasticsearch client (created from config if None).
        """
        self.config_path = config_path
        self.elasticsearch = elasticsearch or {}
        self.report_path = report_path
        self.client = client
        self.results: list[PreflightResult] = []

    def run_all_checks(self) -> list[PreflightResult]:
        """Run all preflight checks and return results."""
        self.results = []

        if self.config_path is not None:
            self._check_config_file()

        config = self._check_settings()
        if config is not None:
            self._check_backend(config)

        if self.report_path is not None:
            self._check_report()

        return self.results

    def _check_config_file(self) -> None:
        validation = validate_config(self.config_path)
        if validation.valid:
            self.results.append(
                PreflightResult(
                    name="Configuration File",
                    passed=True,
                    message="Configuration file is valid",
                    details=f"Config: {self.config_path}",
                )
            )
        else:
            self.results.append(
                PreflightResult(
                    name="Configuration File",
                    passed=False,
                    message="Configuration validation failed",
                    details="\n".join(f"  - {e.field}: {e.error}" for e in validation.errors),
                    error=f"Found {len(validation.errors)} errors",
                )
            )

    def _check_settings(self) -> UploaderConfig | None:
        try:
            config = build_config(self.config_path, elasticsearch=self.elasticsearch)
        except ConfigError as e:
            self.results.append(
                PreflightResult(
                    name="Elasticsearch Settings",
                    passed=False,
                    message="Elasticsearch settings are incomplete",
                    error=str(e),
                )
            )
            return None

        es = config.elasticsearch
        self.results.append(
            PreflightResult(
                name="Elasticsearch Settings",
                passed=True,
                message="All required settings are present",
                details=f"URL: {es.url}\nIndex: {es.index}\nMode: {es.server_mode}",
            )
        )
        return config

    def _check_backend(self, config: UploaderConfig) -> None:
        uploader = BulkUploader(config.elasticsearch, client=self.client)
        try:
            uploader.verify_connection()
        except BackendConnectionError as e:
            self.results.append(
                PreflightResult(
                    name="Elasticsearch Connection",
                    passed=False,
                    message="Elasticsearch is not reachable",
                    error=str(e),
                    details="Check the URL, network access and API key",
                )
            )
            return

        self.results.append(
            PreflightResult(
                name="Elasticsearch Connection",
                passed=True,
                message="Elasticsearch answered the ping",
                details=config.elasticsearch.url,
            )
        )

    def _check_report(self) -> None:
        try:
            report = parse_report_file(self.report_path)
        except MalformedReportError as e:
            self.results.append(
                PreflightResult(
                    name="Test Report",
                    passed=False,
                    message="Report cannot be converted",
                    error=str(e),
                )
            )
            return

        self.results.append(
            PreflightResult(
                name="Test Report",
                passed=True,
                message="Report parsed successfully",
                details=f"Suites: {len(report.suite_names)}, Test cases: {len(report)}",
            )
        )

    def print_results(self, console: Console) -> None:
        """Print preflight results in a formatted table."""
        table = Table(title="Preflight Results", show_header=True, header_style="bold cyan")
        table.add_column("Check", style="bold")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        for result in self.results:
            status = "[green]✓ PASS[/green]" if result.passed else "[red]✗ FAIL[/red]"
            message = result.message
            if result.details:
                message += f"\n[dim]{result.details}[/dim]"
            if result.error:
                message += f"\n[red]Error: {result.error}[/red]"
            table.add_row(result.name, status, message)

        console.print(table)

    def get_summary(self) -> dict[str, Any]:
        """Get summary of check results."""
        total = len(self.results)
        passed = sum(1 for r in self.results if r.passed)
        failed = total - passed

        return {
            "total": total,
            "passed": passed,
            "failed": failed,
            "all_passed": failed == 0 and total > 0,
        }

    def print_summary(self, console: Console) -> None:
        """Print summary panel."""
        summary = self.get_summary()

        if summary["all_passed"]:
            status_text = "[green]✓ ALL CHECKS PASSED[/green]"
            panel_style = "green"
        else:
            status_text = f"[red]✗ {summary['failed']} CHECK(S) FAILED[/red]"
            panel_style = "red"

        ready = "ready" if summary["all_passed"] else "not ready"
        summary_text = (
            f"{status_text}\n\nPassed: {summary['passed']}/{summary['total']}\n\n"
            f"[dim]Your setup is {ready} to upload test results.[/dim]"
        )
        console.print(Panel(summary_text, title="Summary", border_style=panel_style))


def run_preflight(
    console: Console,
    config_path: Path | None = None,
    elasticsearch: dict[str, Any] | None = None,
    report_path: Path | None = None,
) -> bool:
    """Run preflight checks and return True if all passed."""
    runner = PreflightRunner(
        config_path=config_path, elasticsearch=elasticsearch, report_path=report_path
    )

    console.print("\n[bold]Running preflight checks...[/bold]\n")
    runner.run_all_checks()
    runner.print_results(console)
    console.print()
    runner.print_summary(console)

    return runner.get_summary()["all_passed"]
