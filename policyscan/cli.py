"""Command-line front end for policyscan.

Usage:
    policyscan "Install-Deploy"                 # table view, config defaults
    policyscan ".*" --format list               # literal ".*", full evidence
    policyscan Deploy --reports ./reports --script-base ./sysvol/Policies -j 8

Progress is written to stderr as one updating line; results go to stdout.

Exit codes:
    0  scan completed (with or without matches)
    1  configuration error (raised as SystemExit by load_config)
    2  policy objects could not be enumerated
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, TextIO

from policyscan.config import load_config
from policyscan.constants import MAX_CONCURRENCY
from policyscan.errors import EnumerationError
from policyscan.models.scan import ProgressEvent, ScanOptions
from policyscan.report import render_list, render_table, results_to_dicts
from policyscan.scanner.orchestrator import ScanOrchestrator
from policyscan.sources.filesystem import ReportDirectorySource, ScriptRootResolver
from policyscan.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ENUMERATION_FAILED = 2


class ProgressLine:
    """Single-line progress display on a terminal stream."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stderr
        self._width = 0

    def __call__(self, event: ProgressEvent) -> None:
        seconds = int(event.elapsed.total_seconds())
        line = (
            f"[{event.index:>{len(str(event.total))}}/{event.total}] "
            f"{event.percent:3d}%  {seconds // 60:02d}:{seconds % 60:02d}  {event.label}"
        )
        self._width = max(self._width, len(line))
        self.stream.write("\r" + line.ljust(self._width))
        self.stream.flush()

    def finish(self) -> None:
        if self._width:
            self.stream.write("\n")
            self.stream.flush()


def _concurrency(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if not 1 <= number <= MAX_CONCURRENCY:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_CONCURRENCY}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="policyscan",
        description=(
            "Search policy objects (metadata reports and logon/logoff/startup/"
            "shutdown scripts) for a literal, case-insensitive term."
        ),
    )
    parser.add_argument("term", nargs="?", help="Literal search term (prompted for if omitted)")
    parser.add_argument("--config", help="Path to a policyscan config.yaml")
    parser.add_argument("--reports", help="Directory of XML metadata reports (overrides config)")
    parser.add_argument("--script-base", help="Base folder of per-object script trees (overrides config)")
    parser.add_argument(
        "-j", "--concurrency",
        type=_concurrency,
        help="Policy objects scanned in parallel (default: from config, 1)",
    )
    parser.add_argument(
        "--format",
        choices=("table", "list", "json"),
        default="table",
        help="Output format (default: table)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress the progress line")
    return parser


def _read_term(args: argparse.Namespace, parser: argparse.ArgumentParser) -> str:
    term = args.term
    if term is None and sys.stdin.isatty():
        term = input("Search term: ")
    if not term:
        parser.error("a non-empty search term is required")
    return term


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.logging.level, json_output=config.logging.json)

    term = _read_term(args, parser)
    source = ReportDirectorySource(args.reports or config.sources.reports_dir)
    resolver = ScriptRootResolver(args.script_base or config.sources.script_base)
    progress = None if args.quiet else ProgressLine()

    orchestrator = ScanOrchestrator(
        list_policies=source.list_policies,
        fetch_document=source.fetch_document,
        resolve_script_root=resolver,
        on_progress=progress,
    )
    options = ScanOptions(concurrency=args.concurrency or config.scan.concurrency)

    try:
        outcome = orchestrator.run(term, options)
    except EnumerationError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return EXIT_ENUMERATION_FAILED
    finally:
        if progress is not None:
            progress.finish()

    if args.format == "json":
        print(json.dumps(results_to_dicts(outcome.results), indent=2))
    elif args.format == "list":
        rendered = render_list(outcome.results)
        if rendered:
            print(rendered)
    else:
        rendered = render_table(outcome.results)
        if rendered:
            print(rendered)

    print(
        f"{len(outcome.results)} matching policy object(s) in "
        f"{outcome.elapsed.total_seconds():.1f}s",
        file=sys.stderr,
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
