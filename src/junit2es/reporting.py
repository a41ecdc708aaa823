"""Console rendering of conversion statistics and upload results."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .statistics import ReportStatistics
from .uploader import ERROR_PREVIEW_LIMIT, UploadResult


def format_error_lines(result: UploadResult, limit: int = ERROR_PREVIEW_LIMIT) -> list[str]:
    """Describe the first ``limit`` item errors plus a count of the rest.

    Args:
        result: Upload result with item errors.
        limit: Maximum number of errors listed individually.

    Returns:
        Plain text lines, empty if there were no errors.
    """
    lines = []
    for number, err in enumerate(result.first_errors(limit), start=1):
        line = f"  {number}. {err.error_type}: {err.reason}"
        if err.test_name:
            line += f" (testName: {err.test_name})"
        lines.append(line)

    remaining = result.error_count - limit
    if remaining > 0:
        lines.append(f"  ... and {remaining} more errors")
    return lines


def print_upload_result(result: UploadResult, index: str, console: Console) -> None:
    """Print the outcome of a bulk upload."""
    if result.total == 0:
        console.print(f"[yellow]No documents uploaded to index \"{index}\"[/yellow]")
        return

    if not result.has_errors:
        console.print(f"[green]✓ Successfully uploaded {result.total} documents![/green]")
        if result.took_ms is not None:
            console.print(f"   Took: {result.took_ms}ms")
        return

    console.print(
        f"[red]✗ Upload completed with {result.error_count} errors[/red] "
        f"({result.succeeded}/{result.total} documents indexed in \"{index}\"):"
    )
    for line in format_error_lines(result):
        console.print(line, markup=False, highlight=False)


def print_statistics(stats: ReportStatistics, console: Console) -> None:
    """Print per-suite counts and the report summary."""
    table = Table(title="Test Report Summary", show_header=True, header_style="bold cyan")
    table.add_column("Suite", style="bold")
    table.add_column("Tests", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Flaky", justify="right", style="yellow")
    table.add_column("Duration", justify="right")

    for name, suite in stats.per_suite.items():
        table.add_row(
            name,
            str(suite.total),
            str(suite.passed),
            str(suite.failed),
            str(suite.flaky),
            f"{suite.duration:.3f}s",
        )

    console.print(table)

    summary = (
        f"Tests: {stats.total}  Passed: {stats.passed}  Failed: {stats.failed}  "
        f"Flaky: {stats.flaky}\n"
        f"Pass Rate: {stats.pass_rate:.1%}  Duration: {stats.total_duration:.3f}s"
    )
    if stats.flaky_then_failed:
        summary += (
            f"\n[yellow]{stats.flaky_then_failed} failed test(s) "
            "also reported a flaky failure[/yellow]"
        )
    if not stats.matches_declared_total:
        summary += (
            f"\n[dim]Report declares {stats.declared_tests} tests, "
            f"found {stats.total} test cases[/dim]"
        )

    style = "green" if stats.failed == 0 else "red"
    console.print(Panel(summary, title="Summary", border_style=style))
