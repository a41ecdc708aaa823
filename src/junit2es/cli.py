"""Command-line interface for junit2es."""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import VALID_SERVER_MODES, build_config
from .config_validator import validate_config
from .exceptions import (
    BackendConnectionError,
    BulkRequestError,
    ConfigError,
    MalformedReportError,
)
from .mapper import TestRun
from .pipeline import convert_report, upload_report, write_ndjson
from .preflight import run_preflight
from .reporting import print_statistics, print_upload_result

logger = logging.getLogger("junit2es")

COMMANDS = ("upload", "convert", "check", "validate-config")

EXAMPLE = (
    "junit2es upload junit.xml --es-url https://elastic.example.com "
    "--es-server-mode serverless --es-index test-results --es-api-key YOUR_BASE64_API_KEY"
)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    logging.getLogger("elastic_transport").setLevel(logging.INFO if verbose else logging.WARNING)


def _es_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("elasticsearch")
    group.add_argument("--config", "-c", type=Path, help="YAML or TOML config file")
    group.add_argument("--es-url", help="Elasticsearch URL (env: ES_URL)")
    group.add_argument("--es-index", help="Target index (env: ES_INDEX)")
    group.add_argument("--es-api-key", help="Base64 API key (env: ES_API_KEY)")
    group.add_argument(
        "--es-server-mode",
        choices=VALID_SERVER_MODES,
        help="Deployment flavour (env: ES_SERVER_MODE)",
    )
    return parent


def _run_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("run metadata")
    group.add_argument("--runner-name", help="Name of the CI runner")
    group.add_argument("--run-id", help="Identifier of the CI run")
    group.add_argument("--extra", help="Extra value stored on every document")
    return parent


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="junit2es",
        description="Upload JUnit XML test reports to Elasticsearch",
        epilog=f"Example:\n  {EXAMPLE}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    es_options = _es_options()
    run_options = _run_options()

    p = sub.add_parser(
        "upload", parents=[es_options, run_options], help="Convert a report and upload it"
    )
    p.add_argument("report", type=Path, help="JUnit XML report")
    p.add_argument("--stats", action="store_true", help="Print a report summary table")

    p = sub.add_parser("convert", parents=[run_options], help="Convert a report to NDJSON")
    p.add_argument("report", type=Path, help="JUnit XML report")
    p.add_argument("--output", "-o", type=Path, help="Output file (default: stdout)")
    p.add_argument("--stats", action="store_true", help="Print a report summary table")
    p.add_argument("--stats-json", type=Path, help="Write summary statistics as JSON")

    p = sub.add_parser("check", parents=[es_options], help="Run preflight checks")
    p.add_argument("report", type=Path, nargs="?", help="Optional report to test-parse")

    p = sub.add_parser("validate-config", help="Validate a config file")
    p.add_argument("config", type=Path, help="YAML or TOML config file")

    return parser


def _normalize_argv(argv: list[str]) -> list[str]:
    # "junit2es report.xml --es-url ..." is shorthand for "junit2es upload report.xml ..."
    for position, arg in enumerate(argv):
        if arg in ("-h", "--help", "--version"):
            return argv
        if arg in ("-v", "--verbose"):
            continue
        if arg not in COMMANDS:
            return argv[:position] + ["upload"] + argv[position:]
        return argv
    return argv


def cmd_upload(args: argparse.Namespace, console: Console) -> int:
    config = build_config(
        args.config,
        elasticsearch={
            "url": args.es_url,
            "index": args.es_index,
            "api_key": args.es_api_key,
            "server_mode": args.es_server_mode,
        },
        run={"runner_name": args.runner_name, "run_id": args.run_id, "extra": args.extra},
    )

    result = upload_report(args.report, config)
    if args.stats:
        print_statistics(result.conversion.statistics, console)
    print_upload_result(result.upload, config.elasticsearch.index, console)
    return 0


def cmd_convert(args: argparse.Namespace, console: Console) -> int:
    test_run = TestRun(runner_name=args.runner_name, run_id=args.run_id, extra=args.extra)
    conversion = convert_report(args.report, test_run)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            count = write_ndjson(conversion.documents, f)
        logger.info("Wrote %d documents to %s", count, args.output)
    else:
        write_ndjson(conversion.documents, sys.stdout)

    stats = conversion.statistics
    if args.stats:
        print_statistics(stats, Console(stderr=True))
    if args.stats_json:
        args.stats_json.write_text(json.dumps(stats.to_dict(), indent=2))
    return 0


def cmd_check(args: argparse.Namespace, console: Console) -> int:
    ok = run_preflight(
        console,
        config_path=args.config,
        elasticsearch={
            "url": args.es_url,
            "index": args.es_index,
            "api_key": args.es_api_key,
            "server_mode": args.es_server_mode,
        },
        report_path=args.report,
    )
    return 0 if ok else 1


def cmd_validate_config(args: argparse.Namespace, console: Console) -> int:
    result = validate_config(args.config)

    for error in result.errors:
        console.print(f"[red]✗ {error.field}: {error.error}[/red]")
        if error.suggestion:
            console.print(f"  [dim]{error.suggestion}[/dim]")
    for warning in result.warnings:
        console.print(f"[yellow]! {warning.field}: {warning.error}[/yellow]")
        if warning.suggestion:
            console.print(f"  [dim]{warning.suggestion}[/dim]")

    if result.valid:
        console.print(f"[green]✓ {args.config} is valid[/green]")
        return 0
    return 1


HANDLERS = {
    "upload": cmd_upload,
    "convert": cmd_convert,
    "check": cmd_check,
    "validate-config": cmd_validate_config,
}


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code.

    Exit codes: 0 on success (including uploads with per-document errors),
    1 on malformed input, configuration or connection errors, 2 on usage
    errors.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(_normalize_argv(argv))
    setup_logging(args.verbose)
    console = Console()

    try:
        return HANDLERS[args.command](args, console)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        console.print(f"[dim]Example: {EXAMPLE}[/dim]", highlight=False)
    except MalformedReportError as e:
        logger.error("Invalid test report: %s", e)
    except BackendConnectionError as e:
        logger.error("Connection failed: %s", e)
    except BulkRequestError as e:
        logger.error("Error uploading to Elasticsearch: %s", e)
        if e.body:
            logger.error("Details: %s", json.dumps(e.body, indent=2, default=str))
    return 1


if __name__ == "__main__":
    sys.exit(main())
