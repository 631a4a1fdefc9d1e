#!/usr/bin/env python3
"""cvqual/main.py — command-line front end.

Usage examples
--------------
    # Check translation units and print GCC-style diagnostics
    cvqual check widget.cpp text_block.cpp

    # Same, JSON lines, four worker processes
    cvqual check src/*.cpp --format json -j 4

    # Also dump the qualifier annotation of every evaluated expression
    cvqual check widget.cpp --annotate sexp

    # Dump the parsed unit model
    cvqual parse widget.cpp -f json

    # Show macro hazards and the proposed inline-function rewrites
    cvqual macros macros.cpp

    # List diagnostic kinds and codes
    cvqual codes

Exit codes
----------
    0   No error-severity diagnostics.
    1   At least one error-severity diagnostic was emitted.
    2   Infrastructure failure (unreadable file, bad configuration).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from cvqual import __version__
from cvqual.analyzer import AnalysisResult, analyze_file, analyze_paths
from cvqual.annotate import (
    annotation_to_dict,
    dumps_annotations,
    dumps_diagnostics,
    dumps_unit,
    node_to_dict,
)
from cvqual.config import AnalyzerConfig
from cvqual.errors import CvqualError, CvqualErrorCodes, Diagnostic, FrontendError
from cvqual.frontend import parse_unit

_log = logging.getLogger("cvqual")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("cvqual")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` or ``"-"`` → stdout; otherwise open the path for writing."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _load_config(args: argparse.Namespace) -> AnalyzerConfig:
    """Configuration file first, then command-line overrides."""
    config = AnalyzerConfig.from_file(args.config) if args.config else AnalyzerConfig()
    overrides = {}
    if args.enable:
        overrides["enabled"] = list(args.enable)
    if args.suppress:
        overrides["suppressed"] = config.suppressed + list(args.suppress)
    if args.min_severity:
        overrides["min_severity"] = args.min_severity
    if args.no_precedence:
        overrides["report_precedence_hazards"] = False
    if getattr(args, "jobs", None):
        overrides["jobs"] = args.jobs
    if overrides:
        merged = {**config.__dict__, **overrides}
        config = AnalyzerConfig.from_dict(merged)
    for warning in config.validate():
        _log.warning("configuration: %s", warning)
    return config


def _emit_diagnostics(diagnostics: List[Diagnostic], fmt: str, stream: TextIO) -> int:
    """Write *diagnostics* in the chosen format; return the error count."""
    error_count = sum(1 for d in diagnostics if d.severity.is_error())
    if fmt == "json":
        for diag in diagnostics:
            stream.write(json.dumps(diag.to_dict()) + "\n")
    elif fmt == "sexp":
        if diagnostics:
            stream.write(dumps_diagnostics(diagnostics) + "\n")
    else:
        for diag in diagnostics:
            stream.write(diag.to_gcc_format() + "\n")
    if fmt == "summary":
        stream.write(f"\n--- {len(diagnostics)} diagnostic(s), "
                     f"{error_count} error(s) ---\n")
    return error_count


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_check(args: argparse.Namespace) -> int:
    """Analyze every file and report diagnostics."""
    config = _load_config(args)
    results: List[AnalysisResult] = analyze_paths(args.files, config, config.jobs)

    out = _open_output(args.output)
    errors = 0
    try:
        for result in results:
            errors += _emit_diagnostics(result.diagnostics, args.format, out)
            if args.annotate == "json":
                payload = {
                    "unit": result.unit,
                    "annotations": [annotation_to_dict(a) for a in result.annotations],
                }
                out.write(json.dumps(payload) + "\n")
            elif args.annotate == "sexp" and result.annotations:
                out.write(dumps_annotations(result.annotations) + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    _log.info("%d file(s), %d error(s)", len(results), errors)
    return EXIT_ERROR if errors else EXIT_OK


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse one file and print the unit model."""
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CvqualError(f"cannot read {path}: {exc.strerror}", cause=exc) from exc
    try:
        unit = parse_unit(text, str(path))
    except FrontendError as exc:
        _emit_diagnostics([exc.to_diagnostic()], "gcc", sys.stderr)
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        if args.format == "json":
            out.write(json.dumps(node_to_dict(unit), indent=2) + "\n")
        elif args.format == "repr":
            for item in unit.items:
                out.write(repr(item) + "\n")
        elif unit.items:
            out.write(dumps_unit(unit) + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


def cmd_macros(args: argparse.Namespace) -> int:
    """List macro hazards and rewrite proposals."""
    config = _load_config(args)
    result = analyze_file(args.file, config)

    out = _open_output(args.output)
    try:
        for report in result.macro_reports:
            rule = report.rule
            params = ", ".join(rule.params)
            out.write(f"{rule.name}({params}) at {rule.loc}\n")
            if report.multiple_evaluation:
                out.write(f"  evaluated more than once: {', '.join(report.multiple_evaluation)}\n")
            for issue in report.precedence:
                out.write(f"  precedence: {issue.param or 'body'} ({issue.detail})\n")
            if report.proposal:
                out.write(f"  proposal: {report.proposal}\n")
            if not report.hazardous:
                out.write("  no hazards\n")
    finally:
        if out is not sys.stdout:
            out.close()

    if result.diagnostics:
        _emit_diagnostics(result.diagnostics, "gcc", sys.stderr)
    return EXIT_ERROR if result.has_errors else EXIT_OK


def cmd_codes(args: argparse.Namespace) -> int:
    out = _open_output(args.output)
    try:
        for code in CvqualErrorCodes.all():
            out.write(f"  {code.code}  {code.kind.value:<28} {code.default_severity.value}\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cvqual",
        description=(
            "cvqual — const-correctness analyzer for a C++ subset.\n\n"
            "Checks assignments, bindings and call resolution against\n"
            "cv-qualification, class-constant placement and macro hazards."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              cvqual check widget.cpp
              cvqual check src/*.cpp --format json -j 4
              cvqual check widget.cpp --annotate json
              cvqual parse widget.cpp -f sexp
              cvqual macros macros.cpp
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_output_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-o", "--output",
            default=None,
            help="Write output to FILE instead of stdout.",
        )

    def _add_config_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("configuration")
        g.add_argument(
            "--config",
            default=None,
            metavar="FILE",
            help="JSON configuration file.",
        )
        g.add_argument(
            "--enable",
            action="append",
            metavar="KIND",
            help="Report only these diagnostic kinds (repeatable).",
        )
        g.add_argument(
            "--suppress",
            action="append",
            metavar="TAG",
            help="Suppress a diagnostic kind or code everywhere (repeatable).",
        )
        g.add_argument(
            "--min-severity",
            choices=["error", "warning", "style", "information"],
            default=None,
            help="Drop diagnostics below this severity.",
        )
        g.add_argument(
            "--no-precedence",
            action="store_true",
            help="Do not report macro precedence hazards.",
        )

    # check ------------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Analyze translation units.",
    )
    p_check.add_argument("files", nargs="+", help="Source files.")
    p_check.add_argument(
        "-f", "--format",
        choices=["gcc", "json", "sexp", "summary"],
        default="gcc",
        help="Diagnostic output format (default: gcc).",
    )
    p_check.add_argument(
        "--annotate",
        choices=["sexp", "json"],
        default=None,
        help="Also write the qualifier annotation of every evaluated expression.",
    )
    p_check.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        help="Analyze files in N worker processes.",
    )
    _add_output_args(p_check)
    _add_config_args(p_check)
    p_check.set_defaults(func=cmd_check)

    # parse ------------------------------------------------------------------
    p_parse = subparsers.add_parser(
        "parse",
        help="Parse a file and dump the unit model (debugging aid).",
    )
    p_parse.add_argument("file", help="Source file.")
    p_parse.add_argument(
        "-f", "--format",
        choices=["sexp", "json", "repr"],
        default="sexp",
        help="Output format (default: sexp).",
    )
    _add_output_args(p_parse)
    p_parse.set_defaults(func=cmd_parse)

    # macros -----------------------------------------------------------------
    p_macros = subparsers.add_parser(
        "macros",
        help="Report macro hazards and proposed rewrites.",
    )
    p_macros.add_argument("file", help="Source file.")
    _add_output_args(p_macros)
    _add_config_args(p_macros)
    p_macros.set_defaults(func=cmd_macros)

    # codes ------------------------------------------------------------------
    p_codes = subparsers.add_parser(
        "codes",
        help="List diagnostic kinds and their codes.",
    )
    _add_output_args(p_codes)
    p_codes.set_defaults(func=cmd_codes)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI; returns the exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except CvqualError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
